from __future__ import annotations
from enum import Enum
from typing import Optional, List
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from robotcare.models.authz import Base
from robotcare.utils.clock import utcnow


class TicketStatus(str, Enum):
    OPEN = 'open'
    IN_PROGRESS = 'in_progress'
    PENDING = 'pending'
    RESOLVED = 'resolved'
    CLOSED = 'closed'


class TicketPriority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'


class StageType(str, Enum):
    """Fixed, ordered stage enumeration; declaration order is the display order."""
    ABNORMAL_DESCRIPTION = 'abnormal_description'
    ABNORMAL_ANALYSIS = 'abnormal_analysis'
    REQUIRED_PARTS = 'required_parts'
    ON_SITE_SOLUTION = 'on_site_solution'
    SUMMARY = 'summary'
    CUSTOMER_CONFIRMATION = 'customer_confirmation'

    @property
    def position(self) -> int:
        return STAGE_ORDER.index(self)

    @property
    def previous(self) -> Optional['StageType']:
        idx = self.position
        return STAGE_ORDER[idx - 1] if idx > 0 else None


class StageStatus(str, Enum):
    NOT_STARTED = 'not_started'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'


STAGE_ORDER = tuple(StageType)

STAGE_TITLES = {
    StageType.ABNORMAL_DESCRIPTION: 'Abnormal description',
    StageType.ABNORMAL_ANALYSIS: 'Abnormal analysis',
    StageType.REQUIRED_PARTS: 'Required parts',
    StageType.ON_SITE_SOLUTION: 'On-site solution',
    StageType.SUMMARY: 'Summary',
    StageType.CUSTOMER_CONFIRMATION: 'Customer confirmation',
}


class Ticket(Base):
    __tablename__ = 'tickets'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    customer_id: Mapped[int] = mapped_column(ForeignKey('organizations.id'), nullable=False, index=True)
    robot_id: Mapped[int] = mapped_column(ForeignKey('robots.id'), nullable=False, index=True)
    service_provider_id: Mapped[Optional[int]] = mapped_column(ForeignKey('organizations.id'), nullable=True, index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    assigned_to: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketStatus.OPEN.value, index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=TicketPriority.MEDIUM.value)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    resolution_notes: Mapped[Optional[str]] = mapped_column(Text)
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    # Optimistic concurrency: concurrent ticket writes raise StaleDataError -> Conflict
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    stages: Mapped[List['TicketStage']] = relationship(back_populates='ticket', cascade='all, delete-orphan')
    comments: Mapped[List['Comment']] = relationship(back_populates='ticket', cascade='all, delete-orphan', order_by='Comment.id')
    rating: Mapped[Optional['Rating']] = relationship(back_populates='ticket', cascade='all, delete-orphan', uselist=False)

    __mapper_args__ = {'version_id_col': version}

# Status flow: open -> in_progress (assignment) -> resolved (customer confirmation).
# pending is reachable only from outside the workflow engine; closed is administrative.


class TicketStage(Base):
    __tablename__ = 'ticket_stages'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    stage_type: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default='')
    attachments: Mapped[list] = mapped_column(JSON, default=list)
    expected_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=StageStatus.NOT_STARTED.value)
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    updated_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    ticket: Mapped[Ticket] = relationship(back_populates='stages')

    __table_args__ = (UniqueConstraint('ticket_id', 'stage_type', name='uq_ticket_stage_type'),)


class Comment(Base):
    __tablename__ = 'ticket_comments'
    MAX_LENGTH = 500
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    ticket: Mapped[Ticket] = relationship(back_populates='comments')


class Rating(Base):
    __tablename__ = 'ticket_ratings'
    MIN_SCORE = 1
    MAX_SCORE = 5
    MAX_COMMENT_LENGTH = 500
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('tickets.id', ondelete='CASCADE'), nullable=False, unique=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(500))
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    ticket: Mapped[Ticket] = relationship(back_populates='rating')
