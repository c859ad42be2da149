from sqlalchemy import Column, String, Date, DateTime, Integer, Boolean, Numeric
from sqlalchemy.sql import func
from fishfarm.core.database import Base


class Harvest(Base):
    __tablename__ = "harvests"

    id = Column(Integer, primary_key=True, index=True)

    lot_id = Column(Integer, nullable=True, index=True)
    pond_id = Column(Integer, nullable=True, index=True)

    date = Column(Date, nullable=False, index=True)

    trout_count = Column(Integer, nullable=False, default=0)
    sheet_number = Column(String, nullable=True)     # harvest sheet number written on paper
    kilos = Column(Numeric(12, 3), nullable=False, default=0)
    packages = Column(Integer, nullable=True)
    package_type_id = Column(Integer, nullable=True)
    detail_id = Column(Integer, nullable=True)       # presentation detail (whole, fillet, ...)

    active = Column(Boolean, nullable=False, default=True, index=True)

    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
