from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class AuditEventOut(BaseModel):
    id: int
    actor_id: int
    action: str
    target_table: str
    target_record_id: str
    detail: Optional[Dict[str, Any]] = None
    occurred_at: datetime

    class Config:
        from_attributes = True
