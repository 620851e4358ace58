from __future__ import annotations
from typing import Any, Dict, List, Optional
from sqlalchemy import func, select
from robotcare.constants.permissions import Role
from robotcare.models.authz import User
from robotcare.models.ticket import Ticket, TicketStatus
from robotcare.services.policy import Actor, scope_ticket_query
from robotcare.utils.clock import isoformat

ACTIVE_STATUSES = (TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value)
ACTIVE_TICKETS_SHOWN = 3

STATUS_IDLE = 'idle'
STATUS_WORKING = 'working'
STATUS_BUSY = 'busy'


def engineer_status(active_count: int, busy_threshold: int = 3) -> str:
    if active_count > busy_threshold:
        return STATUS_BUSY
    if active_count > 0:
        return STATUS_WORKING
    return STATUS_IDLE


def _user_json(u: User) -> Dict[str, Any]:
    return {
        'id': u.id,
        'org_id': u.org_id,
        'display_name': u.display_name,
        'email': u.email,
        'phone': u.phone,
        'role': u.role,
        'status': u.status,
        'last_login_at': isoformat(u.last_login_at),
    }


def list_engineers(session, actor: Actor, include_stats: bool = True, ticket_id: Optional[int] = None,
                   busy_threshold: int = 3) -> List[Dict[str, Any]]:
    """Engineers of the actor's organization and side, annotated with workload.

    Stats count only tickets inside the actor's visible scope.
    """
    role = Role.SERVICE_ENGINEER if actor.is_service else Role.END_ENGINEER
    users = session.execute(
        select(User)
        .where(User.org_id == actor.org_id, User.role == role.value, User.status != User.STATUS_PENDING)
        .order_by(User.display_name.asc(), User.id.asc())
    ).scalars().all()
    out = [_user_json(u) for u in users]
    if not include_stats or not users:
        return out

    scoped = scope_ticket_query(session, session.query(Ticket), Ticket, actor)
    ids = [u.id for u in users]
    counts: Dict[int, Dict[str, int]] = {uid: {s.value: 0 for s in TicketStatus} for uid in ids}
    rows = (
        scoped.filter(Ticket.assigned_to.in_(ids))
        .with_entities(Ticket.assigned_to, Ticket.status, func.count(Ticket.id))
        .group_by(Ticket.assigned_to, Ticket.status)
        .all()
    )
    for assignee, status, n in rows:
        counts[assignee][status] = n

    assigned_to_ticket = None
    if ticket_id is not None:
        assigned_to_ticket = scoped.filter(Ticket.id == ticket_id).with_entities(Ticket.assigned_to).scalar()

    for body in out:
        stats = counts[body['id']]
        stats['total'] = sum(stats.values())
        active_count = sum(stats[s] for s in ACTIVE_STATUSES)
        active = (
            scoped.filter(Ticket.assigned_to == body['id'], Ticket.status.in_(ACTIVE_STATUSES))
            .order_by(Ticket.updated_at.desc(), Ticket.id.desc())
            .limit(ACTIVE_TICKETS_SHOWN)
            .all()
        )
        body['ticket_stats'] = stats
        body['current_status'] = engineer_status(active_count, busy_threshold)
        body['active_tickets'] = [
            {'id': t.id, 'ticket_number': t.ticket_number, 'title': t.title,
             'status': t.status, 'priority': t.priority}
            for t in active
        ]
        if ticket_id is not None:
            body['is_assigned_to_current_ticket'] = assigned_to_ticket == body['id']
    return out


__all__ = ['list_engineers', 'engineer_status', 'STATUS_IDLE', 'STATUS_WORKING', 'STATUS_BUSY']
