from __future__ import annotations
"""Notification outbox.

Rows are written by the workflow engine inside the same transaction as the change
that produced them. Delivery happens after commit and is best-effort: a failed
send is logged and recorded on the row, never propagated to the caller.
"""
import logging
from typing import Iterable, List, Optional
import requests
from sqlalchemy import select
from robotcare.models.notification import Notification
from robotcare.utils.clock import utcnow, isoformat

logger = logging.getLogger(__name__)


class LoggingSender:
    """Default sender when no webhook is configured: records delivery in the log."""

    def send(self, notification: Notification) -> None:
        logger.info(
            'notification %s (%s) for ticket %s -> %s',
            notification.id, notification.type, notification.ticket_id,
            ', '.join(notification.recipients or []) or '<no recipients>',
        )


class WebhookSender:
    def __init__(self, url: str, timeout: int = 5):
        self.url = url
        self.timeout = timeout

    def send(self, notification: Notification) -> None:
        payload = {
            'id': notification.id,
            'ticket_id': notification.ticket_id,
            'type': notification.type,
            'title': notification.title,
            'message': notification.message,
            'recipients': list(notification.recipients or []),
            'created_at': isoformat(notification.created_at),
        }
        logger.info('posting notification %s to %s', notification.id, self.url)
        response = requests.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()


def build_sender(config) -> object:
    url = config.get('NOTIFY_WEBHOOK_URL')
    if url:
        return WebhookSender(url, timeout=int(config.get('NOTIFY_TIMEOUT_SECONDS', 5)))
    return LoggingSender()


class NotificationDispatcher:
    def __init__(self, sender=None, max_attempts: int = 5):
        self.sender = sender or LoggingSender()
        self.max_attempts = max_attempts

    def publish(self, session, ticket_id: int, type: str, title: str, message: str,
                recipients: Iterable[str], created_by: int) -> Notification:
        """Stage an outbox row in the caller's transaction (no commit)."""
        note = Notification(
            ticket_id=ticket_id,
            type=type,
            title=title,
            message=message,
            recipients=sorted({r for r in recipients if r}),
            status=Notification.STATUS_PENDING,
            attempts=0,
            created_by=created_by,
            created_at=utcnow(),
        )
        session.add(note)
        return note

    def deliver(self, session, notification: Optional[Notification]) -> bool:
        """Attempt one delivery and persist the outcome. Never raises."""
        if notification is None:
            return False
        notification.attempts = (notification.attempts or 0) + 1
        try:
            self.sender.send(notification)
        except Exception as exc:
            logger.warning('notification %s delivery failed: %s', notification.id, exc)
            notification.status = Notification.STATUS_FAILED
            notification.last_error = str(exc)[:500]
            delivered = False
        else:
            notification.status = Notification.STATUS_SENT
            notification.sent_at = utcnow()
            notification.last_error = None
            delivered = True
        try:
            session.commit()
        except Exception:
            logger.exception('could not record delivery state for notification %s', notification.id)
            session.rollback()
        return delivered

    def dispatch_pending(self, session, limit: int = 50) -> dict:
        """Retry pending and failed rows that still have attempts left."""
        rows: List[Notification] = session.execute(
            select(Notification)
            .where(
                Notification.status.in_([Notification.STATUS_PENDING, Notification.STATUS_FAILED]),
                Notification.attempts < self.max_attempts,
            )
            .order_by(Notification.id.asc())
            .limit(limit)
        ).scalars().all()
        sent = failed = 0
        for note in rows:
            if self.deliver(session, note):
                sent += 1
            else:
                failed += 1
        logger.info('dispatched notifications: %d sent, %d failed', sent, failed)
        return {'attempted': len(rows), 'sent': sent, 'failed': failed}


__all__ = ['LoggingSender', 'WebhookSender', 'NotificationDispatcher', 'build_sender']
