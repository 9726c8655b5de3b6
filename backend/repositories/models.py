"""
SQLAlchemy ORM models for persistence.
"""
from datetime import datetime
from sqlalchemy import Column, DateTime, JSON, String

from db import Base


class KeyValueORM(Base):
    __tablename__ = "kv_store"

    key = Column(String, primary_key=True, index=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
