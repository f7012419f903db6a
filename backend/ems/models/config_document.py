from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, DateTime, func

from .base import Base


class ConfigDocument(Base):
    """Whole SystemConfig stored as one JSON document (written atomically per mutation)."""
    __tablename__ = 'config_documents'
    SYSTEM_KEY = 'system'
    key: Mapped[str] = mapped_column(String(32), primary_key=True, default=SYSTEM_KEY)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
