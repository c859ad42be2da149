from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fishfarm.api.deps import get_clock, get_db, get_gate
from fishfarm.core.audit import DELETE, INSERT, UPDATE, log_audit, snapshot
from fishfarm.core.auth import CurrentUser, OPERADOR, SUPERADMIN, require_role
from fishfarm.core.pass_check import MutationIntent, PassCheckGate, changed_fields
from fishfarm.core.time import Clock
from fishfarm.models.harvest import Harvest
from fishfarm.schemas.harvest import HarvestCreate, HarvestOut, HarvestPatch, HarvestReplace

router = APIRouter(prefix="/harvests", tags=["harvests"])

any_user = require_role(SUPERADMIN, OPERADOR)


def _get_or_404(db: Session, harvest_id: int) -> Harvest:
    harvest = db.query(Harvest).filter(Harvest.id == harvest_id).first()
    if not harvest:
        raise HTTPException(status_code=404, detail="Registro no encontrado")
    return harvest


@router.get("", response_model=List[HarvestOut])
def list_harvests(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(any_user),
    active: Optional[bool] = Query(True, description="false lists deactivated records"),
    lot_id: Optional[int] = Query(None),
    pond_id: Optional[int] = Query(None),
    detail_id: Optional[int] = Query(None),
    sheet_number: Optional[str] = Query(None, description="search by harvest sheet number"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    q = db.query(Harvest)

    if active is not None:
        q = q.filter(Harvest.active.is_(active))
    if lot_id is not None:
        q = q.filter(Harvest.lot_id == lot_id)
    if pond_id is not None:
        q = q.filter(Harvest.pond_id == pond_id)
    if detail_id is not None:
        q = q.filter(Harvest.detail_id == detail_id)
    if sheet_number:
        q = q.filter(Harvest.sheet_number.ilike(f"%{sheet_number.strip()}%"))
    if date_from:
        q = q.filter(Harvest.date >= date_from)
    if date_to:
        q = q.filter(Harvest.date <= date_to)

    return q.order_by(Harvest.date.desc(), Harvest.id.desc()).offset(offset).limit(limit).all()


@router.get("/{harvest_id}", response_model=HarvestOut)
def get_harvest(
    harvest_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(any_user),
):
    return _get_or_404(db, harvest_id)


@router.post("", response_model=HarvestOut, status_code=201)
def create_harvest(
    payload: HarvestCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    harvest = Harvest(**payload.model_dump(exclude={"active"}), active=True, created_by=current_user.id, created_at=clock())
    db.add(harvest)
    db.flush()
    log_audit(
        db,
        actor_id=current_user.id,
        action=INSERT,
        target_table=Harvest.__tablename__,
        target_record_id=harvest.id,
        detail={"new": snapshot(harvest)},
        occurred_at=clock(),
    )
    db.commit()
    db.refresh(harvest)
    return harvest


@router.put("/{harvest_id}", response_model=HarvestOut)
def replace_harvest(
    harvest_id: int,
    payload: HarvestReplace,
    db: Session = Depends(get_db),
    gate: PassCheckGate = Depends(get_gate),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    """
    Full replacement. Operators need an edit pass for changed columns and a
    deactivate/restore pass when ``active`` changes; a body changing both needs both.
    """
    harvest = _get_or_404(db, harvest_id)
    data = payload.model_dump()
    if data.get("active") is None:
        data.pop("active", None)

    gate.enforce_intent(current_user, Harvest.__tablename__, harvest.id, MutationIntent.of("PUT", changed_fields(harvest, data)))

    before = snapshot(harvest)
    for k, v in data.items():
        setattr(harvest, k, v)
    harvest.updated_by = current_user.id
    harvest.updated_at = clock()
    db.flush()

    log_audit(
        db,
        actor_id=current_user.id,
        action=UPDATE,
        target_table=Harvest.__tablename__,
        target_record_id=harvest.id,
        detail={"old": before, "new": snapshot(harvest)},
        occurred_at=clock(),
    )
    db.commit()
    db.refresh(harvest)
    return harvest


@router.patch("/{harvest_id}", response_model=HarvestOut)
def update_harvest(
    harvest_id: int,
    payload: HarvestPatch,
    db: Session = Depends(get_db),
    gate: PassCheckGate = Depends(get_gate),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    updates = payload.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No hay campos para actualizar")

    harvest = _get_or_404(db, harvest_id)
    gate.enforce_intent(current_user, Harvest.__tablename__, harvest.id, MutationIntent.of("PATCH", changed_fields(harvest, updates)))

    before = snapshot(harvest)
    for k, v in updates.items():
        setattr(harvest, k, v)
    harvest.updated_by = current_user.id
    harvest.updated_at = clock()
    db.flush()

    log_audit(
        db,
        actor_id=current_user.id,
        action=UPDATE,
        target_table=Harvest.__tablename__,
        target_record_id=harvest.id,
        detail={"old": before, "new": snapshot(harvest)},
        occurred_at=clock(),
    )
    db.commit()
    db.refresh(harvest)
    return harvest


@router.delete("/{harvest_id}")
def delete_harvest(
    harvest_id: int,
    db: Session = Depends(get_db),
    gate: PassCheckGate = Depends(get_gate),
    clock: Clock = Depends(get_clock),
    current_user: CurrentUser = Depends(any_user),
):
    """Soft delete: the row stays, ``active`` goes false."""
    harvest = _get_or_404(db, harvest_id)
    gate.enforce_intent(current_user, Harvest.__tablename__, harvest.id, MutationIntent.of("DELETE"))

    before = snapshot(harvest)
    harvest.active = False
    harvest.updated_by = current_user.id
    harvest.updated_at = clock()
    db.flush()

    log_audit(
        db,
        actor_id=current_user.id,
        action=DELETE,
        target_table=Harvest.__tablename__,
        target_record_id=harvest.id,
        detail={"old": before, "soft_delete": True},
        occurred_at=clock(),
    )
    db.commit()
    return {"ok": True}
