from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from fishfarm.api.deps import get_clock, get_db
from fishfarm.core.auth import CurrentUser, SUPERADMIN, require_role
from fishfarm.core.time import Clock
from fishfarm.models.audit_event import AuditEvent
from fishfarm.schemas.audit_log import AuditEventOut

router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])

admin_only = require_role(SUPERADMIN)


@router.get("", response_model=List[AuditEventOut])
def list_audit_logs(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(admin_only),
    start_date: Optional[datetime] = Query(None, description="ISO date-time"),
    end_date: Optional[datetime] = Query(None, description="ISO date-time"),
    actor_id: Optional[int] = Query(None),
    target_table: Optional[str] = Query(None),
    target_record_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None, description="INSERT|UPDATE|DELETE|APPROVE|REJECT|CODE_USED"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(AuditEvent)

    if start_date:
        q = q.filter(AuditEvent.occurred_at >= start_date)
    if end_date:
        q = q.filter(AuditEvent.occurred_at <= end_date)
    if actor_id is not None:
        q = q.filter(AuditEvent.actor_id == actor_id)
    if target_table:
        q = q.filter(AuditEvent.target_table == target_table)
    if target_record_id:
        q = q.filter(AuditEvent.target_record_id == target_record_id)
    if action:
        q = q.filter(AuditEvent.action == action.strip().upper())

    return q.order_by(AuditEvent.id.desc()).offset(offset).limit(limit).all()


@router.get("/stats")
def audit_log_stats(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(admin_only),
):
    start_today = clock().replace(hour=0, minute=0, second=0, microsecond=0)

    total = db.query(AuditEvent).count()
    today = db.query(AuditEvent).filter(AuditEvent.occurred_at >= start_today).count()
    by_action = dict(
        db.query(AuditEvent.action, func.count(AuditEvent.id)).group_by(AuditEvent.action).all()
    )

    return {
        "total": total,
        "today": today,
        "by_action": by_action,
    }
