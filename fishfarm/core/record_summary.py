"""Plain-text summaries of protected records for the approver email."""
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from fishfarm.models.harvest import Harvest
from fishfarm.models.loss import Loss

NONE = "-"


def _loss_lines(row: Loss) -> List[str]:
    return [
        f"ID: {row.id}",
        f"Fecha: {row.date}",
        f"Lote: {row.lot_id if row.lot_id is not None else NONE}",
        f"Piscina: {row.pond_id if row.pond_id is not None else NONE}",
        f"Muertos: {row.dead or 0}",
        f"Faltantes: {row.missing or 0}",
        f"Sobrantes: {row.surplus or 0}",
        f"Deformes: {row.deformed or 0}",
    ]


def _harvest_lines(row: Harvest) -> List[str]:
    return [
        f"ID: {row.id}",
        f"Fecha: {row.date}",
        f"Lote: {row.lot_id if row.lot_id is not None else NONE}",
        f"Piscina: {row.pond_id if row.pond_id is not None else NONE}",
        f"Truchas: {row.trout_count or 0}",
        f"Kilos: {row.kilos if row.kilos is not None else 0}",
        f"Hoja: {row.sheet_number or NONE}",
    ]


SUMMARIZERS: Dict[str, Tuple[type, object]] = {
    Loss.__tablename__: (Loss, _loss_lines),
    Harvest.__tablename__: (Harvest, _harvest_lines),
}


def summarize_record(db: Session, table: str, record_id: int) -> Optional[str]:
    """Summary of ``table`` #``record_id``, or None for unknown tables and missing rows."""
    entry = SUMMARIZERS.get(table)
    if entry is None:
        return None
    model, lines = entry
    row = db.get(model, record_id)
    if row is None:
        return None
    return "\n".join(lines(row))
