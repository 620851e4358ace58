from __future__ import annotations
"""Ticket stage workflow engine.

Every mutation of a ticket goes through one of the named operations below. Each
operation takes an explicit ``Actor``, runs as one unit of work against the
session and either commits or rolls back as a whole. Status changes are only
made through ``TICKET_FSM``; there is no generic status setter.

Concurrency:
  * Ticket rows carry a version counter. Operations that change ticket fields
    (assignment, resolution, description sync, summary completion) take it, so
    concurrent writers of the ticket row surface as ``Conflict``. Stage saves
    and comments only touch ``updated_at`` outside the version; different
    stages stay independent and the same stage is last-write-wins.
  * Summary completion is a conditional UPDATE keyed on the stage status, so
    only one caller can flip it.
  * Ratings are unique per ticket; a lost race surfaces as ``AlreadyConfirmed``.

Notifications are staged in the outbox inside the transaction and delivered
after commit; delivery failures never undo a committed transition.
"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from robotcare.constants.permissions import (
    Role, TKT_READ, TKT_CREATE, TKT_COMMENT, TKT_STAGE_WRITE, TKT_ASSIGN,
    TKT_SUMMARY_COMPLETE, TKT_CONFIRM,
)
from robotcare.errors import (
    Forbidden, NotFound, ValidationError, Conflict, AlreadyCompleted, AlreadyConfirmed,
)
from robotcare.models.authz import Organization, User
from robotcare.models.robot import Robot
from robotcare.models.notification import Notification
from robotcare.models.ticket import (
    Ticket, TicketStage, Comment, Rating, TicketStatus, TicketPriority,
    StageType, StageStatus, STAGE_ORDER, STAGE_TITLES,
)
from robotcare.models.timeline import TimelineEvent
from robotcare.services import timeline as tl
from robotcare.services.policy import (
    Actor, POLICY_NOT_FOUND, can_view_ticket, deny_invisible, require, has_active_contract,
)
from robotcare.utils.clock import utcnow
from robotcare.utils.fsm import TransitionValidator
from robotcare.utils.validation import validate_status, validate_text, parse_datetime

logger = logging.getLogger(__name__)

TICKET_FSM = TransitionValidator({
    TicketStatus.OPEN.value: {TicketStatus.IN_PROGRESS.value, TicketStatus.PENDING.value,
                              TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value},
    TicketStatus.IN_PROGRESS.value: {TicketStatus.PENDING.value, TicketStatus.RESOLVED.value,
                                     TicketStatus.CLOSED.value},
    TicketStatus.PENDING.value: {TicketStatus.IN_PROGRESS.value, TicketStatus.RESOLVED.value,
                                 TicketStatus.CLOSED.value},
    TicketStatus.RESOLVED.value: {TicketStatus.CLOSED.value},
    TicketStatus.CLOSED.value: set(),
}, field_name='ticket status')

STAGE_FSM = TransitionValidator({
    StageStatus.NOT_STARTED.value: {StageStatus.IN_PROGRESS.value, StageStatus.COMPLETED.value},
    StageStatus.IN_PROGRESS.value: {StageStatus.COMPLETED.value},
    StageStatus.COMPLETED.value: set(),
}, field_name='stage status')

# Stages whose content may not be saved empty.
REQUIRED_CONTENT_STAGES = frozenset({
    StageType.ABNORMAL_DESCRIPTION,
    StageType.ABNORMAL_ANALYSIS,
    StageType.ON_SITE_SOLUTION,
    StageType.SUMMARY,
})

_UNSET = object()


def parse_stage_type(value) -> StageType:
    try:
        return StageType(value)
    except ValueError:
        raise ValidationError(
            'stage_type invalid',
            meta={'allowed': [s.value for s in STAGE_ORDER]},
        )


def assert_predecessors_started(stages: Iterable, stage_type: StageType):
    """Optional sequential check: every earlier stage type must have a saved record."""
    present = {StageType(s.stage_type) for s in stages}
    missing = [t.value for t in STAGE_ORDER[:stage_type.position] if t not in present]
    if missing:
        raise Conflict(
            f'Stage {stage_type.value} requires earlier stages first',
            meta={'missing': missing},
        )


def _validate_attachments(value) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError('attachments must be a list')
    out = []
    for item in value:
        if isinstance(item, str) and item.strip():
            out.append({'url': item.strip()})
        elif isinstance(item, dict) and (item.get('url') or item.get('id')):
            out.append(dict(item))
        else:
            raise ValidationError('attachments entries must be a url string or an object with url/id')
    return out


def _validate_score(value) -> int:
    if isinstance(value, bool):
        raise ValidationError('score must be an integer between 1 and 5')
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValidationError('score must be an integer between 1 and 5')
    if isinstance(value, float) and value != score:
        raise ValidationError('score must be an integer between 1 and 5')
    if not Rating.MIN_SCORE <= score <= Rating.MAX_SCORE:
        raise ValidationError('score must be an integer between 1 and 5', meta={'score': score})
    return score


class TicketWorkflowEngine:
    def __init__(self, session, dispatcher=None, strict_stage_order: bool = False,
                 cross_tenant_policy: str = POLICY_NOT_FOUND):
        self.session = session
        self.dispatcher = dispatcher
        self.strict_stage_order = strict_stage_order
        self.cross_tenant_policy = cross_tenant_policy

    @classmethod
    def from_app(cls, app, session) -> 'TicketWorkflowEngine':
        return cls(
            session,
            dispatcher=app.extensions.get('robotcare.notifications'),
            strict_stage_order=bool(app.config.get('WORKFLOW_STRICT_STAGE_ORDER')),
            cross_tenant_policy=app.config.get('CROSS_TENANT_POLICY', POLICY_NOT_FOUND),
        )

    # --- plumbing ---
    @contextmanager
    def _transaction(self):
        try:
            yield
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            raise Conflict('Ticket was modified concurrently; reload and retry')
        except Exception:
            self.session.rollback()
            raise

    def _load_ticket(self, actor: Actor, ticket_id) -> Ticket:
        ticket = self.session.get(Ticket, ticket_id)
        if ticket is None:
            raise NotFound('Ticket not found', meta={'ticket_id': ticket_id})
        if not can_view_ticket(self.session, actor, ticket):
            deny_invisible(ticket_id, self.cross_tenant_policy)
        return ticket

    def _stages(self, ticket_id: int) -> List[TicketStage]:
        return self.session.execute(
            select(TicketStage).where(TicketStage.ticket_id == ticket_id)
        ).scalars().all()

    def _get_stage(self, ticket_id: int, stage_type: StageType) -> Optional[TicketStage]:
        return self.session.execute(
            select(TicketStage).where(
                TicketStage.ticket_id == ticket_id,
                TicketStage.stage_type == stage_type.value,
            )
        ).scalar_one_or_none()

    def _has_rating(self, ticket_id: int) -> bool:
        return self.session.execute(
            select(Rating.id).where(Rating.ticket_id == ticket_id)
        ).first() is not None

    def _upsert_stage(self, actor: Actor, ticket: Ticket, stage_type: StageType, now,
                      content=_UNSET, attachments=_UNSET, expected_date=_UNSET) -> TicketStage:
        stage = self._get_stage(ticket.id, stage_type)
        if stage is None:
            stage = TicketStage(
                ticket_id=ticket.id,
                stage_type=stage_type.value,
                content='' if content is _UNSET else content,
                attachments=[] if attachments is _UNSET else attachments,
                expected_date=None if expected_date is _UNSET else expected_date,
                status=StageStatus.IN_PROGRESS.value,
                meta={},
                created_by=actor.user_id,
                updated_by=actor.user_id,
                created_at=now,
                updated_at=now,
            )
            self.session.add(stage)
        else:
            if content is not _UNSET:
                stage.content = content
            if attachments is not _UNSET:
                stage.attachments = attachments
            if expected_date is not _UNSET:
                stage.expected_date = expected_date
            stage.updated_by = actor.user_id
            stage.updated_at = now
        try:
            self.session.flush()
        except IntegrityError:
            raise Conflict(
                f'Stage {stage_type.value} was created concurrently; reload and retry',
                meta={'stage_type': stage_type.value},
            )
        return stage

    def _contacts(self, org_id: Optional[int], roles: Iterable[Role]) -> List[str]:
        if org_id is None:
            return []
        out = []
        org = self.session.get(Organization, org_id)
        if org is not None and org.contact_email:
            out.append(org.contact_email)
        emails = self.session.execute(
            select(User.email).where(
                User.org_id == org_id,
                User.role.in_([r.value for r in roles]),
                User.status == User.STATUS_ACTIVE,
            )
        ).scalars().all()
        out.extend(emails)
        return out

    def _publish(self, ticket: Ticket, actor: Actor, type: str, title: str, message: str,
                 recipients: List[str]) -> Optional[Notification]:
        if self.dispatcher is None:
            return None
        return self.dispatcher.publish(
            self.session, ticket_id=ticket.id, type=type, title=title, message=message,
            recipients=recipients, created_by=actor.user_id,
        )

    def _deliver(self, note: Optional[Notification]):
        if note is not None and self.dispatcher is not None:
            self.dispatcher.deliver(self.session, note)

    def _touch(self, ticket: Ticket, now):
        """Bump updated_at without taking the ticket's version: writes to stage and
        comment rows never conflict with each other."""
        table = Ticket.__table__
        self.session.execute(update(table).where(table.c.id == ticket.id).values(updated_at=now))
        self.session.expire(ticket, ['updated_at'])

    def _set_status(self, actor: Actor, ticket: Ticket, target: TicketStatus, now):
        previous = ticket.status
        TICKET_FSM.assert_can_transition(previous, target.value)
        ticket.status = validate_status(target.value, [s.value for s in TicketStatus])
        tl.add_timeline_event(
            self.session, tl.EVENT_STATUS_CHANGED, 'Ticket status changed', actor.user_id,
            ticket_id=ticket.id, robot_id=ticket.robot_id,
            description=f'{previous} -> {target.value}',
            meta={'from': previous, 'to': target.value},
        )

    # --- reads ---
    def get_ticket(self, actor: Actor, ticket_id) -> Ticket:
        ticket = self._load_ticket(actor, ticket_id)
        require(actor, TKT_READ)
        return ticket

    def list_stages(self, actor: Actor, ticket_id) -> List[TicketStage]:
        """Stages of a visible ticket in the fixed enumeration order."""
        ticket = self.get_ticket(actor, ticket_id)
        return sorted(self._stages(ticket.id), key=lambda s: StageType(s.stage_type).position)

    def list_timeline(self, actor: Actor, ticket_id) -> List[TimelineEvent]:
        ticket = self.get_ticket(actor, ticket_id)
        return self.session.execute(
            select(TimelineEvent)
            .where(TimelineEvent.ticket_id == ticket.id)
            .order_by(TimelineEvent.created_at.desc(), TimelineEvent.id.desc())
        ).scalars().all()

    def list_comments(self, actor: Actor, ticket_id) -> List[Comment]:
        ticket = self.get_ticket(actor, ticket_id)
        return self.session.execute(
            select(Comment).where(Comment.ticket_id == ticket.id).order_by(Comment.id.asc())
        ).scalars().all()

    # --- mutations ---
    def create_ticket(self, actor: Actor, robot_id, title, description=None, priority=None,
                      robot_status=None, due_date=None) -> Ticket:
        """Open a ticket against a robot and move the robot into ``robot_status``."""
        title = validate_text(title, 'title', max_length=200)
        description = validate_text(description, 'description', required=False)
        priority = validate_status(priority or TicketPriority.MEDIUM.value,
                                   [p.value for p in TicketPriority], 'priority')
        robot_status = validate_status(robot_status or Robot.STATUS_FAULT, Robot.ALL_STATUSES, 'robot_status')
        due = parse_datetime(due_date, 'due_date')
        with self._transaction():
            require(actor, TKT_CREATE)
            robot = self.session.get(Robot, robot_id)
            if robot is None:
                raise NotFound('Robot not found', meta={'robot_id': robot_id})
            if actor.is_end and robot.org_id != actor.org_id:
                raise Forbidden('Robot belongs to another organization')
            if actor.is_service and not has_active_contract(self.session, actor.org_id, robot.org_id):
                raise Forbidden('No active service contract with the robot owner')
            now = utcnow()
            ticket = Ticket(
                ticket_number=self._next_ticket_number(),
                title=title,
                description=description,
                customer_id=robot.org_id,
                robot_id=robot.id,
                service_provider_id=robot.service_provider_id,
                created_by=actor.user_id,
                status=TicketStatus.OPEN.value,
                priority=priority,
                due_date=due,
                meta={},
                created_at=now,
                updated_at=now,
            )
            self.session.add(ticket)
            try:
                self.session.flush()
            except IntegrityError:
                raise Conflict('Ticket number collision; retry')
            if robot.status != robot_status:
                previous = robot.status
                robot.status = robot_status
                tl.add_timeline_event(
                    self.session, tl.EVENT_STATUS_CHANGED, 'Robot status changed', actor.user_id,
                    ticket_id=ticket.id, robot_id=robot.id,
                    description=f'{previous} -> {robot_status}',
                    meta={'from': previous, 'to': robot_status, 'reason': 'ticket_created'},
                )
            tl.add_timeline_event(
                self.session, tl.EVENT_TICKET_CREATED, f'Ticket {ticket.ticket_number} created',
                actor.user_id, ticket_id=ticket.id, robot_id=robot.id,
                description=tl.summarize(title),
                meta={'priority': priority, 'ticket_number': ticket.ticket_number},
            )
        logger.info('ticket %s created by user %s', ticket.ticket_number, actor.user_id)
        return ticket

    def _next_ticket_number(self) -> str:
        last = self.session.execute(
            select(Ticket.ticket_number)
            .where(Ticket.ticket_number.like('RB%'))
            .order_by(func.length(Ticket.ticket_number).desc(), Ticket.ticket_number.desc())
            .limit(1)
        ).scalar_one_or_none()
        seq = 0
        if last:
            try:
                seq = int(last[2:])
            except ValueError:
                seq = 0
        return 'RB%05d' % (seq + 1)

    def create_or_update_stage(self, actor: Actor, ticket_id, stage_type, payload: Optional[Dict[str, Any]] = None) -> TicketStage:
        """Save content for one stage, creating the stage record on first write.

        customer_confirmation is written by the customer side only (and not
        after a rating exists); every other stage by the service side only.
        Saving abnormal_description also rewrites the ticket description.
        """
        stage_type = parse_stage_type(stage_type)
        payload = payload or {}
        if not isinstance(payload, dict):
            raise ValidationError('payload must be an object')
        required = stage_type in REQUIRED_CONTENT_STAGES
        content = _UNSET
        if required or 'content' in payload:
            content = validate_text(payload.get('content'), 'content', required=required)
        attachments = _validate_attachments(payload['attachments']) if 'attachments' in payload else _UNSET
        expected = parse_datetime(payload['expected_date'], 'expected_date') if 'expected_date' in payload else _UNSET
        with self._transaction():
            ticket = self._load_ticket(actor, ticket_id)
            if stage_type == StageType.CUSTOMER_CONFIRMATION:
                require(actor, TKT_CONFIRM, 'Only the customer may write the confirmation stage')
                if actor.org_id != ticket.customer_id:
                    raise Forbidden('Only the ticket customer may write the confirmation stage')
                if self._has_rating(ticket.id):
                    raise AlreadyConfirmed('Ticket already confirmed by the customer')
            else:
                require(actor, TKT_STAGE_WRITE, f'Only service roles may write {stage_type.value}')
            if self.strict_stage_order:
                assert_predecessors_started(self._stages(ticket.id), stage_type)
            now = utcnow()
            stage = self._upsert_stage(actor, ticket, stage_type, now,
                                       content=content, attachments=attachments, expected_date=expected)
            if stage_type == StageType.ABNORMAL_DESCRIPTION:
                ticket.description = stage.content
                ticket.updated_at = now
            else:
                self._touch(ticket, now)
            tl.add_timeline_event(
                self.session, tl.EVENT_STAGE_UPDATED, f'{STAGE_TITLES[stage_type]} updated',
                actor.user_id, ticket_id=ticket.id, robot_id=ticket.robot_id,
                description=tl.summarize(stage.content),
                meta={'stage_type': stage_type.value, 'stage_status': stage.status},
            )
        return stage

    def assign_engineer(self, actor: Actor, ticket_id, engineer_id) -> Ticket:
        """Assign (or re-assign) a service engineer; an open ticket moves to in_progress."""
        with self._transaction():
            ticket = self._load_ticket(actor, ticket_id)
            require(actor, TKT_ASSIGN, 'Only service roles may assign engineers')
            engineer = self._find_engineer(actor, engineer_id)
            previous = ticket.assigned_to
            now = utcnow()
            ticket.assigned_to = engineer.id
            ticket.updated_at = now
            if ticket.status == TicketStatus.OPEN.value:
                self._set_status(actor, ticket, TicketStatus.IN_PROGRESS, now)
            tl.add_timeline_event(
                self.session, tl.EVENT_ASSIGNED, f'Assigned to {engineer.display_name}', actor.user_id,
                ticket_id=ticket.id, robot_id=ticket.robot_id,
                meta={'assigned_to': engineer.id, 'previous_assigned_to': previous},
            )
            note = self._publish(
                ticket, actor, Notification.TYPE_ASSIGNED,
                f'Ticket {ticket.ticket_number} assigned to you',
                ticket.title, [engineer.email],
            )
            self.session.flush()
        self._deliver(note)
        return ticket

    def _find_engineer(self, actor: Actor, engineer_id) -> User:
        try:
            engineer_id = int(engineer_id)
        except (TypeError, ValueError):
            raise ValidationError('engineer_id must be an integer')
        engineer = self.session.get(User, engineer_id)
        if (
            engineer is None
            or engineer.org_id != actor.org_id
            or engineer.status != User.STATUS_ACTIVE
            or engineer.role != Role.SERVICE_ENGINEER.value
        ):
            raise NotFound('Engineer not found', meta={'engineer_id': engineer_id})
        return engineer

    def complete_summary(self, actor: Actor, ticket_id, summary_content: Optional[str] = None) -> TicketStage:
        """Save the summary and mark it completed in one transaction, then notify
        the customer. Exactly one caller can complete a given summary stage."""
        with self._transaction():
            ticket = self._load_ticket(actor, ticket_id)
            require(actor, TKT_SUMMARY_COMPLETE, 'Only service roles may complete the summary')
            stage = self._get_stage(ticket.id, StageType.SUMMARY)
            if stage is not None and stage.status == StageStatus.COMPLETED.value:
                raise AlreadyCompleted('Summary already completed', meta={'ticket_id': ticket.id})
            if summary_content is not None:
                content = validate_text(summary_content, 'summary_content')
            else:
                content = validate_text(stage.content if stage else None, 'summary content')
            if self.strict_stage_order:
                assert_predecessors_started(self._stages(ticket.id), StageType.SUMMARY)
            now = utcnow()
            stage = self._upsert_stage(actor, ticket, StageType.SUMMARY, now, content=content)
            result = self.session.execute(
                update(TicketStage)
                .where(TicketStage.id == stage.id, TicketStage.status != StageStatus.COMPLETED.value)
                .values(status=StageStatus.COMPLETED.value, completed_at=now,
                        updated_at=now, updated_by=actor.user_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise AlreadyCompleted('Summary already completed', meta={'ticket_id': ticket.id})
            self.session.expire(stage, ['status', 'completed_at', 'updated_at', 'updated_by'])
            ticket.updated_at = now
            tl.add_timeline_event(
                self.session, tl.EVENT_SUMMARY_COMPLETED, 'Summary completed', actor.user_id,
                ticket_id=ticket.id, robot_id=ticket.robot_id,
                description=tl.summarize(content),
            )
            note = self._publish(
                ticket, actor, Notification.TYPE_SUMMARY_COMPLETED,
                f'Ticket {ticket.ticket_number} awaits your confirmation',
                content, self._contacts(ticket.customer_id, (Role.END_ADMIN,)),
            )
            self.session.flush()
        self._deliver(note)
        return stage

    def confirm_by_customer(self, actor: Actor, ticket_id, score, comment: Optional[str] = None) -> Rating:
        """Record the customer's rating, complete customer_confirmation and resolve the ticket."""
        score = _validate_score(score)
        comment_text = validate_text(comment, 'comment', max_length=Rating.MAX_COMMENT_LENGTH, required=False) or None
        with self._transaction():
            ticket = self._load_ticket(actor, ticket_id)
            require(actor, TKT_CONFIRM, 'Only the customer may confirm a ticket')
            if actor.org_id != ticket.customer_id:
                raise Forbidden('Only the ticket customer may confirm it')
            if self._has_rating(ticket.id):
                raise AlreadyConfirmed('Ticket already confirmed by the customer', meta={'ticket_id': ticket.id})
            now = utcnow()
            rating = Rating(ticket_id=ticket.id, score=score, comment=comment_text,
                            created_by=actor.user_id, created_at=now)
            self.session.add(rating)
            try:
                self.session.flush()
            except IntegrityError:
                raise AlreadyConfirmed('Ticket already confirmed by the customer', meta={'ticket_id': ticket.id})
            stage = self._upsert_stage(
                actor, ticket, StageType.CUSTOMER_CONFIRMATION, now,
                content=comment_text if comment_text else _UNSET,
            )
            if stage.status != StageStatus.COMPLETED.value:
                STAGE_FSM.assert_can_transition(stage.status, StageStatus.COMPLETED.value)
                stage.status = StageStatus.COMPLETED.value
                stage.completed_at = now
            stage.meta = {**(stage.meta or {}), 'rating_id': rating.id, 'score': score}
            if ticket.status != TicketStatus.RESOLVED.value:
                self._set_status(actor, ticket, TicketStatus.RESOLVED, now)
            ticket.resolved_at = now
            if comment_text:
                ticket.resolution_notes = comment_text
            ticket.updated_at = now
            tl.add_timeline_event(
                self.session, tl.EVENT_CUSTOMER_CONFIRMED, f'Customer confirmed ({score}/5)', actor.user_id,
                ticket_id=ticket.id, robot_id=ticket.robot_id,
                description=tl.summarize(comment_text or ''),
                meta={'score': score, 'rating_id': rating.id},
            )
            note = self._publish(
                ticket, actor, Notification.TYPE_CUSTOMER_CONFIRMED,
                f'Ticket {ticket.ticket_number} confirmed by customer',
                f'Rating {score}/5' + (f': {comment_text}' if comment_text else ''),
                self._contacts(ticket.service_provider_id, (Role.SERVICE_ADMIN,)),
            )
            self.session.flush()
        self._deliver(note)
        return rating

    def add_comment(self, actor: Actor, ticket_id, content) -> Comment:
        text = validate_text(content, 'content', max_length=Comment.MAX_LENGTH)
        with self._transaction():
            ticket = self._load_ticket(actor, ticket_id)
            require(actor, TKT_COMMENT)
            now = utcnow()
            comment = Comment(ticket_id=ticket.id, content=text, created_by=actor.user_id, created_at=now)
            self.session.add(comment)
            self._touch(ticket, now)
            tl.add_timeline_event(
                self.session, tl.EVENT_COMMENT_ADDED, 'Comment added', actor.user_id,
                ticket_id=ticket.id, robot_id=ticket.robot_id,
                description=tl.summarize(text),
            )
            self.session.flush()
        return comment


__all__ = [
    'TicketWorkflowEngine', 'TICKET_FSM', 'STAGE_FSM', 'REQUIRED_CONTENT_STAGES',
    'assert_predecessors_started', 'parse_stage_type',
]
