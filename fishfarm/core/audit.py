from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from fishfarm.models.audit_event import AuditEvent

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
APPROVE = "APPROVE"
REJECT = "REJECT"
CODE_USED = "CODE_USED"


def snapshot(row, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Column values of an ORM row as a JSON-safe dict."""
    mapper = inspect(row).mapper
    values = {
        attr.key: getattr(row, attr.key)
        for attr in mapper.column_attrs
        if attr.key not in exclude
    }
    return jsonable_encoder(values)


def log_audit(
    db: Session,
    *,
    actor_id: int,
    action: str,
    target_table: str,
    target_record_id,
    detail: Optional[Dict[str, Any]] = None,
    occurred_at: Optional[datetime] = None,
) -> AuditEvent:
    """
    Append an audit event inside the caller's transaction.

    The event is flushed, not committed: it becomes durable together with the
    change it describes, or not at all.
    """
    event = AuditEvent(
        actor_id=actor_id,
        action=action,
        target_table=target_table,
        target_record_id=str(target_record_id),
        detail=jsonable_encoder(detail) if detail is not None else None,
    )
    if occurred_at is not None:
        event.occurred_at = occurred_at
    db.add(event)
    db.flush()
    return event


def latest_code_used(db: Session, ledger: str, request_id: int) -> Optional[AuditEvent]:
    """Most recent CODE_USED event written for a request of the given ledger."""
    return (
        db.query(AuditEvent)
        .filter(AuditEvent.target_table == ledger)
        .filter(AuditEvent.target_record_id == str(request_id))
        .filter(AuditEvent.action == CODE_USED)
        .order_by(AuditEvent.id.desc())
        .first()
    )
