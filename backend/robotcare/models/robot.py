from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, DateTime, ForeignKey
from robotcare.models.authz import Base
from robotcare.utils.clock import utcnow

class Robot(Base):
    __tablename__ = 'robots'
    STATUS_ACTIVE = 'active'
    STATUS_MAINTENANCE = 'maintenance'
    STATUS_FAULT = 'fault'
    STATUS_INACTIVE = 'inactive'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_MAINTENANCE, STATUS_FAULT, STATUS_INACTIVE)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    org_id: Mapped[int] = mapped_column(ForeignKey('organizations.id'), nullable=False, index=True)
    service_provider_id: Mapped[Optional[int]] = mapped_column(ForeignKey('organizations.id'), nullable=True, index=True)
    sn: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(64))
    model: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
