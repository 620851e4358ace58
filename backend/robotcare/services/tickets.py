from __future__ import annotations
"""Read-side helpers: scoped ticket queries and JSON projections."""
from datetime import date
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import or_, select
from robotcare.errors import ValidationError
from robotcare.models.ticket import Ticket, TicketStage, Comment, Rating, TicketStatus, TicketPriority, StageType
from robotcare.models.timeline import TimelineEvent
from robotcare.services.gantt import compute_gantt_spans, window_positions
from robotcare.services.policy import Actor, scope_ticket_query
from robotcare.utils.clock import isoformat
from robotcare.utils.validation import validate_status

SORT_FIELDS = {
    'created_at': Ticket.created_at,
    'updated_at': Ticket.updated_at,
    'priority': Ticket.priority,
    'status': Ticket.status,
    'ticket_number': Ticket.ticket_number,
    'due_date': Ticket.due_date,
    'id': Ticket.id,
}


def _int_arg(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer')


def build_ticket_query(session, actor: Actor, filters: Optional[Dict[str, Any]] = None):
    """Ticket query limited to the actor's scope with the supported filters applied."""
    filters = filters or {}
    q = scope_ticket_query(session, session.query(Ticket), Ticket, actor)
    if filters.get('status'):
        q = q.filter(Ticket.status == validate_status(filters['status'], [s.value for s in TicketStatus]))
    if filters.get('priority'):
        q = q.filter(Ticket.priority == validate_status(filters['priority'], [p.value for p in TicketPriority], 'priority'))
    if filters.get('customer_id'):
        q = q.filter(Ticket.customer_id == _int_arg(filters['customer_id'], 'customer_id'))
    if filters.get('robot_id'):
        q = q.filter(Ticket.robot_id == _int_arg(filters['robot_id'], 'robot_id'))
    assigned = filters.get('assigned_to')
    if assigned:
        if assigned == 'none':
            q = q.filter(Ticket.assigned_to.is_(None))
        else:
            q = q.filter(Ticket.assigned_to == _int_arg(assigned, 'assigned_to'))
    search = (filters.get('search') or '').strip()
    if search:
        like = f'%{search}%'
        q = q.filter(or_(
            Ticket.ticket_number.ilike(like),
            Ticket.title.ilike(like),
            Ticket.description.ilike(like),
        ))
    return q


def ticket_json(t: Ticket) -> Dict[str, Any]:
    return {
        'id': t.id,
        'ticket_number': t.ticket_number,
        'title': t.title,
        'description': t.description,
        'status': t.status,
        'priority': t.priority,
        'customer_id': t.customer_id,
        'robot_id': t.robot_id,
        'service_provider_id': t.service_provider_id,
        'created_by': t.created_by,
        'assigned_to': t.assigned_to,
        'due_date': isoformat(t.due_date),
        'resolved_at': isoformat(t.resolved_at),
        'resolution_notes': t.resolution_notes,
        'created_at': isoformat(t.created_at),
        'updated_at': isoformat(t.updated_at),
        'version': t.version,
    }


def stage_json(s: TicketStage) -> Dict[str, Any]:
    return {
        'id': s.id,
        'ticket_id': s.ticket_id,
        'stage_type': s.stage_type,
        'content': s.content,
        'attachments': list(s.attachments or []),
        'expected_date': isoformat(s.expected_date),
        'status': s.status,
        'created_by': s.created_by,
        'updated_by': s.updated_by,
        'created_at': isoformat(s.created_at),
        'updated_at': isoformat(s.updated_at),
        'completed_at': isoformat(s.completed_at),
    }


def comment_json(c: Comment) -> Dict[str, Any]:
    return {
        'id': c.id,
        'ticket_id': c.ticket_id,
        'content': c.content,
        'created_by': c.created_by,
        'created_at': isoformat(c.created_at),
    }


def rating_json(r: Optional[Rating]) -> Optional[Dict[str, Any]]:
    if r is None:
        return None
    return {
        'id': r.id,
        'ticket_id': r.ticket_id,
        'score': r.score,
        'comment': r.comment,
        'created_by': r.created_by,
        'created_at': isoformat(r.created_at),
    }


def event_json(e: TimelineEvent) -> Dict[str, Any]:
    return {
        'id': e.id,
        'ticket_id': e.ticket_id,
        'robot_id': e.robot_id,
        'event_type': e.event_type,
        'title': e.title,
        'description': e.description,
        'meta': e.meta or {},
        'created_by': e.created_by,
        'created_at': isoformat(e.created_at),
    }


def gantt_json(ticket: Ticket, stages: Iterable[TicketStage], today: Optional[date] = None) -> Dict[str, Any]:
    spans = compute_gantt_spans(stages, ticket.created_at)
    body = {'spans': [s.to_dict() for s in spans]}
    if today is not None:
        body['window'] = {'today': today.isoformat(), 'positions': window_positions(spans, today)}
    return body


def ticket_detail(session, ticket: Ticket) -> Dict[str, Any]:
    """Ticket with ordered stages, derived Gantt spans, comments, rating and timeline."""
    stages = sorted(
        session.execute(select(TicketStage).where(TicketStage.ticket_id == ticket.id)).scalars().all(),
        key=lambda s: StageType(s.stage_type).position,
    )
    comments = session.execute(
        select(Comment).where(Comment.ticket_id == ticket.id).order_by(Comment.id.asc())
    ).scalars().all()
    rating = session.execute(select(Rating).where(Rating.ticket_id == ticket.id)).scalar_one_or_none()
    events = session.execute(
        select(TimelineEvent)
        .where(TimelineEvent.ticket_id == ticket.id)
        .order_by(TimelineEvent.created_at.desc(), TimelineEvent.id.desc())
    ).scalars().all()
    body = ticket_json(ticket)
    body.update({
        'stages': [stage_json(s) for s in stages],
        'gantt': gantt_json(ticket, stages),
        'comments': [comment_json(c) for c in comments],
        'rating': rating_json(rating),
        'timeline': [event_json(e) for e in events],
    })
    return body


__all__ = [
    'SORT_FIELDS', 'build_ticket_query', 'ticket_json', 'stage_json', 'comment_json',
    'rating_json', 'event_json', 'gantt_json', 'ticket_detail',
]
