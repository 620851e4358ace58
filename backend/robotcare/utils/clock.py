from __future__ import annotations
"""Timestamps are stored as naive UTC (SQLite drops tzinfo) so comparisons never
mix aware and naive values."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(dt) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat() + 'Z'

__all__ = ['utcnow', 'isoformat']
