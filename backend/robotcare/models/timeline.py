from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, JSON, DateTime, ForeignKey

from .authz import Base  # reuse same metadata
from robotcare.utils.clock import utcnow

class TimelineEvent(Base):
    """Append-only history record; written by the workflow engine, never updated."""
    __tablename__ = 'timeline_events'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[Optional[int]] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=True, index=True)
    robot_id: Mapped[Optional[int]] = mapped_column(ForeignKey('robots.id'), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
