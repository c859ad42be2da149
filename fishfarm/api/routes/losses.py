from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fishfarm.api.deps import get_clock, get_db, get_gate
from fishfarm.core.audit import DELETE, INSERT, UPDATE, log_audit, snapshot
from fishfarm.core.auth import CurrentUser, OPERADOR, SUPERADMIN, require_role
from fishfarm.core.pass_check import MutationIntent, PassCheckGate, changed_fields
from fishfarm.core.time import Clock
from fishfarm.models.loss import Loss
from fishfarm.schemas.loss import LossCreate, LossOut, LossPatch, LossReplace

router = APIRouter(prefix="/losses", tags=["losses"])

any_user = require_role(SUPERADMIN, OPERADOR)


def _get_or_404(db: Session, loss_id: int) -> Loss:
    loss = db.query(Loss).filter(Loss.id == loss_id).first()
    if not loss:
        raise HTTPException(status_code=404, detail="Registro no encontrado")
    return loss


@router.get("", response_model=List[LossOut])
def list_losses(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(any_user),
    active: Optional[bool] = Query(True, description="false lists deactivated records"),
    lot_id: Optional[int] = Query(None),
    pond_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(Loss)

    if active is not None:
        q = q.filter(Loss.active.is_(active))
    if lot_id is not None:
        q = q.filter(Loss.lot_id == lot_id)
    if pond_id is not None:
        q = q.filter(Loss.pond_id == pond_id)
    if date_from:
        q = q.filter(Loss.date >= date_from)
    if date_to:
        q = q.filter(Loss.date <= date_to)

    return q.order_by(Loss.date.desc(), Loss.id.desc()).offset(offset).limit(limit).all()


@router.get("/{loss_id}", response_model=LossOut)
def get_loss(
    loss_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(any_user),
):
    return _get_or_404(db, loss_id)


@router.post("", response_model=LossOut, status_code=201)
def create_loss(
    payload: LossCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    loss = Loss(**payload.model_dump(), active=True, created_by=current_user.id, created_at=clock())
    db.add(loss)
    db.flush()
    log_audit(
        db,
        actor_id=current_user.id,
        action=INSERT,
        target_table=Loss.__tablename__,
        target_record_id=loss.id,
        detail={"new": snapshot(loss)},
        occurred_at=clock(),
    )
    db.commit()
    db.refresh(loss)
    return loss


@router.put("/{loss_id}", response_model=LossOut)
def replace_loss(
    loss_id: int,
    payload: LossReplace,
    db: Session = Depends(get_db),
    gate: PassCheckGate = Depends(get_gate),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    """
    Full replacement. Operators need an edit pass for changed columns and a
    deactivate/restore pass when ``active`` changes; a body changing both needs both.
    """
    loss = _get_or_404(db, loss_id)
    data = payload.model_dump()
    if data.get("active") is None:
        data.pop("active", None)

    gate.enforce_intent(current_user, Loss.__tablename__, loss.id, MutationIntent.of("PUT", changed_fields(loss, data)))

    before = snapshot(loss)
    for k, v in data.items():
        setattr(loss, k, v)
    loss.updated_by = current_user.id
    loss.updated_at = clock()
    db.flush()

    log_audit(
        db,
        actor_id=current_user.id,
        action=UPDATE,
        target_table=Loss.__tablename__,
        target_record_id=loss.id,
        detail={"old": before, "new": snapshot(loss)},
        occurred_at=clock(),
    )
    db.commit()
    db.refresh(loss)
    return loss


@router.patch("/{loss_id}", response_model=LossOut)
def update_loss(
    loss_id: int,
    payload: LossPatch,
    db: Session = Depends(get_db),
    gate: PassCheckGate = Depends(get_gate),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    loss = _get_or_404(db, loss_id)
    gate.enforce_intent(current_user, Loss.__tablename__, loss.id, MutationIntent.of("PATCH", changed_fields(loss, updates)))

    before = snapshot(loss)
    for k, v in updates.items():
        setattr(loss, k, v)
    loss.updated_by = current_user.id
    loss.updated_at = clock()
    db.flush()

    log_audit(
        db,
        actor_id=current_user.id,
        action=UPDATE,
        target_table=Loss.__tablename__,
        target_record_id=loss.id,
        detail={"old": before, "new": snapshot(loss)},
        occurred_at=clock(),
    )
    db.commit()
    db.refresh(loss)
    return loss


@router.delete("/{loss_id}")
def delete_loss(
    loss_id: int,
    db: Session = Depends(get_db),
    gate: PassCheckGate = Depends(get_gate),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    """Soft delete: the row stays, ``active`` goes false."""
    loss = _get_or_404(db, loss_id)
    gate.enforce_intent(current_user, Loss.__tablename__, loss.id, MutationIntent.of("DELETE"))

    before = snapshot(loss)
    loss.active = False
    loss.updated_by = current_user.id
    loss.updated_at = clock()
    db.flush()

    log_audit(
        db,
        actor_id=current_user.id,
        action=DELETE,
        target_table=Loss.__tablename__,
        target_record_id=loss.id,
        detail={"old": before, "soft_delete": True},
        occurred_at=clock(),
    )
    db.commit()
    return {"ok": True}
