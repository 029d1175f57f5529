from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func
import uuid

from ..db.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; all DateTime columns store naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UUIDBaseModel(Base):
    """Base model with UUID primary key"""
    __abstract__ = True

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, server_default=func.now(), onupdate=utcnow)
