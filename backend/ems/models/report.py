from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Float, String, Text, JSON, DateTime, func

from .base import Base


class MaintenanceReport(Base):
    __tablename__ = 'maintenance_reports'
    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    branch_id: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    branch_name: Mapped[str] = mapped_column(String(160), nullable=False, default='')
    created_by_user_id: Mapped[str] = mapped_column(String(40), nullable=False)
    created_by_name: Mapped[str] = mapped_column(String(160), nullable=False, default='')
    created_at: Mapped[str] = mapped_column(String(40), nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    machine_type: Mapped[str] = mapped_column(String(120), nullable=False, default='General')
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    assigned_technician_id: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, index=True)
    assigned_technician_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    dynamic_answers: Mapped[list] = mapped_column(JSON, default=list)
    dynamic_data: Mapped[dict] = mapped_column(JSON, default=dict)
    location_coords: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    images_before: Mapped[list] = mapped_column(JSON, default=list)
    images_after: Mapped[list] = mapped_column(JSON, default=list)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    parts_used: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parts_usage_list: Mapped[list] = mapped_column(JSON, default=list)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    logs: Mapped[list] = mapped_column(JSON, default=list)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

# Status flow: NEW -> ASSIGNED -> IN_PROGRESS <-> PENDING_PARTS -> COMPLETED -> CLOSED
# Administrative "reality edits" write status directly and are logged as FORCED_EDIT.
