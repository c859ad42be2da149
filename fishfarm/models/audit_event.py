from sqlalchemy import Column, String, DateTime, Integer, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from fishfarm.core.database import Base


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, nullable=False, index=True)
    target_table = Column(String, nullable=False, index=True)  # losses / harvests / edit_requests / ...
    target_record_id = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False, index=True)  # INSERT/UPDATE/DELETE/APPROVE/REJECT/CODE_USED
    # {old, new} snapshots, or {request_id, used_by, used_at} for CODE_USED
    detail = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    occurred_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("ix_audit_events_target_action", "target_table", "target_record_id", "action"),
    )
