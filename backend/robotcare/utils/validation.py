from __future__ import annotations
"""Reusable validation helpers for domain models.

Focuses on enum membership, bounded free text and date parsing so that the
workflow engine reports consistent ValidationError semantics.
"""
from datetime import date, datetime, timezone
from typing import Iterable, Optional
from robotcare.errors import ValidationError


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or raises ValidationError.
    """
    if new_status not in allowed:
        raise ValidationError(f"{field_name} invalid")
    return new_status


def validate_text(value, field_name: str, max_length: Optional[int] = None, required: bool = True) -> str:
    """Return the stripped text, enforcing presence and an optional length cap.

    The cap applies to the raw input, before surrounding whitespace is removed.
    """
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    text = value.strip()
    if required and not text:
        raise ValidationError(f"{field_name} required")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return text


def parse_datetime(value, field_name: str) -> Optional[datetime]:
    """Accept ISO-8601 strings, dates or datetimes; returns naive UTC datetime or None."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f"{field_name} must be an ISO-8601 date")
    else:
        raise ValidationError(f"{field_name} must be an ISO-8601 date")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

__all__ = ['validate_status', 'validate_text', 'parse_datetime']
