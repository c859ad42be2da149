from sqlalchemy import Column, String, DateTime, Integer, Boolean, Index
from sqlalchemy.sql import func
from fishfarm.core.database import Base


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    email = Column(String, nullable=False)

    # bcrypt hash of the emailed code; the plain code is never stored
    code_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # active: code can still be verified; used: password was changed with it
    active = Column(Boolean, nullable=False, default=True)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    closed_at = Column(DateTime(timezone=True), nullable=True)
    close_reason = Column(String, nullable=True)  # superseded / expired / verified / used

    ip_address = Column(String, nullable=True)
    user_agent = Column(String(500), nullable=True)
    verified_ip = Column(String, nullable=True)
    verified_user_agent = Column(String(500), nullable=True)
    used_ip = Column(String, nullable=True)
    used_user_agent = Column(String(500), nullable=True)

    __table_args__ = (
        Index("ix_password_resets_email_active", "email", "active", "used"),
    )
