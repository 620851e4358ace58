from __future__ import annotations
from typing import Any, Dict, Optional
from robotcare.models.timeline import TimelineEvent
from robotcare.utils.clock import utcnow

EVENT_TICKET_CREATED = 'ticket_created'
EVENT_STATUS_CHANGED = 'status_changed'
EVENT_ASSIGNED = 'assigned'
EVENT_STAGE_UPDATED = 'stage_updated'
EVENT_SUMMARY_COMPLETED = 'summary_completed'
EVENT_CUSTOMER_CONFIRMED = 'customer_confirmed'
EVENT_COMMENT_ADDED = 'comment_added'


def add_timeline_event(
    session,
    event_type: str,
    title: str,
    actor_user_id: int,
    ticket_id: Optional[int] = None,
    robot_id: Optional[int] = None,
    description: str = '',
    meta: Optional[Dict[str, Any]] = None,
):
    """Persist a timeline event within the current DB session.

    Parameters:
      event_type: short code e.g. ticket_created, assigned, stage_updated
      title: human readable heading
      actor_user_id: user that caused the mutation
      ticket_id / robot_id: owning entities (either may be absent for robot-only events)
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    event = TimelineEvent(
        ticket_id=ticket_id,
        robot_id=robot_id,
        event_type=event_type,
        title=title,
        description=description or '',
        meta=dict(meta or {}),
        created_by=actor_user_id,
        created_at=utcnow(),
    )
    session.add(event)
    # No commit here; caller's transaction boundary controls durability.
    return event


def summarize(text: str, limit: int = 100) -> str:
    text = (text or '').strip()
    return text[:limit] + ('...' if len(text) > limit else '')
