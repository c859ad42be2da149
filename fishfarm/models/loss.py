from sqlalchemy import Column, Date, DateTime, Integer, Boolean
from sqlalchemy.sql import func
from fishfarm.core.database import Base


class Loss(Base):
    __tablename__ = "losses"

    id = Column(Integer, primary_key=True, index=True)

    # lots / ponds live in the catalog tables
    lot_id = Column(Integer, nullable=True, index=True)
    pond_id = Column(Integer, nullable=True, index=True)

    date = Column(Date, nullable=False, index=True)

    dead = Column(Integer, nullable=False, default=0)
    missing = Column(Integer, nullable=False, default=0)
    surplus = Column(Integer, nullable=False, default=0)
    deformed = Column(Integer, nullable=False, default=0)

    # soft delete flag
    active = Column(Boolean, nullable=False, default=True, index=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
