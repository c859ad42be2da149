from sqlalchemy import Column, String, DateTime, Integer, Boolean
from sqlalchemy.sql import func
from fishfarm.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    role = Column(String, nullable=False, default="OPERADOR")  # SUPERADMIN / OPERADOR
    password_hash = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
