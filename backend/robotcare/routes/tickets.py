from __future__ import annotations
from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required
from robotcare import get_db
from robotcare.constants.permissions import TKT_READ, TKT_CREATE, TKT_COMMENT, TKT_ASSIGN, TKT_SUMMARY_COMPLETE, TKT_CONFIRM, NOTIFY_DISPATCH
from robotcare.decorators.auth import require_permissions
from robotcare.errors import ValidationError
from robotcare.models.ticket import Ticket
from robotcare.services.policy import current_actor
from robotcare.services.tickets import (
    SORT_FIELDS, build_ticket_query, ticket_json, stage_json, comment_json, rating_json,
    event_json, gantt_json, ticket_detail,
)
from robotcare.services.workflow import TicketWorkflowEngine
from robotcare.utils.clock import utcnow
from robotcare.utils.listing import apply_pagination, make_cached_list_response, make_cached_detail_response, respond
from robotcare.utils.sorting import apply_multi_sort

tkt_bp = Blueprint('tickets', __name__)


def _engine() -> TicketWorkflowEngine:
    return TicketWorkflowEngine.from_app(current_app, get_db())


def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('JSON object body required')
    return data


@tkt_bp.route('', methods=['GET', 'HEAD'])
@require_permissions(TKT_READ)
def list_tickets():
    session = get_db()
    q = build_ticket_query(session, current_actor(), request.args)
    q = apply_multi_sort(q, request.args.get('sort'), SORT_FIELDS, Ticket.id,
                         default=[Ticket.created_at.desc(), Ticket.id.desc()])
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [ticket_json(t) for t in rows]
    latest_ts = max((t.updated_at for t in rows if t.updated_at), default=None)
    resp, etag = make_cached_list_response(data, total, limit, offset, latest_ts)
    return respond(resp, etag, latest_ts)


@tkt_bp.post('')
@require_permissions(TKT_CREATE)
def create_ticket():
    data = _body()
    if data.get('robot_id') is None:
        raise ValidationError('robot_id required')
    ticket = _engine().create_ticket(
        current_actor(),
        robot_id=data.get('robot_id'),
        title=data.get('title'),
        description=data.get('description'),
        priority=data.get('priority'),
        robot_status=data.get('robot_status'),
        due_date=data.get('due_date'),
    )
    return ticket_json(ticket), 201


@tkt_bp.route('/<int:ticket_id>', methods=['GET', 'HEAD'])
@require_permissions(TKT_READ)
def get_ticket(ticket_id: int):
    engine = _engine()
    ticket = engine.get_ticket(current_actor(), ticket_id)
    body = ticket_detail(engine.session, ticket)
    resp, etag = make_cached_detail_response(body, ticket.updated_at)
    return respond(resp, etag, ticket.updated_at)


@tkt_bp.get('/<int:ticket_id>/stages')
@require_permissions(TKT_READ)
def list_stages(ticket_id: int):
    engine = _engine()
    actor = current_actor()
    stages = engine.list_stages(actor, ticket_id)
    ticket = engine.get_ticket(actor, ticket_id)
    return {
        'data': [stage_json(s) for s in stages],
        'gantt': gantt_json(ticket, stages, today=utcnow().date()),
    }


@tkt_bp.post('/<int:ticket_id>/stages')
@jwt_required()
def save_stage(ticket_id: int):
    # Capability depends on the stage type; the engine decides.
    data = _body()
    stage = _engine().create_or_update_stage(current_actor(), ticket_id, data.get('stage_type'), data)
    return stage_json(stage)


@tkt_bp.post('/<int:ticket_id>/assign')
@require_permissions(TKT_ASSIGN)
def assign_engineer(ticket_id: int):
    data = _body()
    if data.get('engineer_id') is None:
        raise ValidationError('engineer_id required')
    ticket = _engine().assign_engineer(current_actor(), ticket_id, data['engineer_id'])
    return ticket_json(ticket)


@tkt_bp.post('/<int:ticket_id>/stages/summary/complete')
@require_permissions(TKT_SUMMARY_COMPLETE)
def complete_summary(ticket_id: int):
    data = _body()
    stage = _engine().complete_summary(current_actor(), ticket_id, data.get('summary_content'))
    return stage_json(stage)


@tkt_bp.post('/<int:ticket_id>/confirm')
@require_permissions(TKT_CONFIRM)
def confirm(ticket_id: int):
    data = _body()
    if data.get('score') is None:
        raise ValidationError('score required')
    rating = _engine().confirm_by_customer(current_actor(), ticket_id, data['score'], data.get('comment'))
    return rating_json(rating), 201


@tkt_bp.get('/<int:ticket_id>/comments')
@require_permissions(TKT_READ)
def list_comments(ticket_id: int):
    comments = _engine().list_comments(current_actor(), ticket_id)
    return {'data': [comment_json(c) for c in comments]}


@tkt_bp.post('/<int:ticket_id>/comments')
@require_permissions(TKT_COMMENT)
def add_comment(ticket_id: int):
    data = _body()
    comment = _engine().add_comment(current_actor(), ticket_id, data.get('content'))
    return comment_json(comment), 201


@tkt_bp.get('/<int:ticket_id>/timeline')
@require_permissions(TKT_READ)
def list_timeline(ticket_id: int):
    events = _engine().list_timeline(current_actor(), ticket_id)
    return {'data': [event_json(e) for e in events]}


@tkt_bp.post('/notifications/dispatch')
@require_permissions(NOTIFY_DISPATCH)
def dispatch_notifications():
    data = _body()
    try:
        limit = int(data.get('limit', 50))
    except (TypeError, ValueError):
        raise ValidationError('limit must be an integer')
    dispatcher = current_app.extensions['robotcare.notifications']
    return dispatcher.dispatch_pending(get_db(), limit=max(1, min(limit, 500)))
