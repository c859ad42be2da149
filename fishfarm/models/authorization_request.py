import enum

from sqlalchemy import Column, String, DateTime, Integer, Boolean, Index, text
from sqlalchemy.sql import func
from fishfarm.core.database import Base


class RequestKind(str, enum.Enum):
    EDIT = "EDIT"
    DEACTIVATE_RESTORE = "DEACTIVATE_RESTORE"

    @property
    def ledger(self) -> str:
        """Name the audit trail uses for events about requests of this kind."""
        return _LEDGER_NAMES[self]


_LEDGER_NAMES = {
    RequestKind.EDIT: "edit_requests",
    RequestKind.DEACTIVATE_RESTORE: "inactivation_requests",
}


class RequestState(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class AuthorizationRequest(Base):
    __tablename__ = "authorization_requests"

    id = Column(Integer, primary_key=True, index=True)

    kind = Column(String, nullable=False, index=True)  # EDIT / DEACTIVATE_RESTORE

    # protected business record: (table, record id) together identify it
    target_table = Column(String(50), nullable=False)
    target_record_id = Column(Integer, nullable=False)

    requester_id = Column(Integer, nullable=False, index=True)
    reason = Column(String(2000), nullable=False)

    state = Column(String, nullable=False, default=RequestState.PENDING.value, index=True)

    # set only once decided
    approver_id = Column(Integer, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    decision_comment = Column(String, nullable=True)

    # set only on approval; the plain code is never stored
    code_hash = Column(String, nullable=True)
    code_expires_at = Column(DateTime(timezone=True), nullable=True)
    code_used = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_authorization_requests_target", "kind", "target_table", "target_record_id"),
        # at most one PENDING request per (kind, table, record, requester)
        Index(
            "uq_authorization_requests_pending",
            "kind",
            "target_table",
            "target_record_id",
            "requester_id",
            unique=True,
            postgresql_where=text("state = 'PENDING'"),
            sqlite_where=text("state = 'PENDING'"),
        ),
    )
