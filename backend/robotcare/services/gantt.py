from __future__ import annotations
"""Gantt projection over a ticket's stages. Pure functions: no DB or clock access."""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional
from robotcare.models.ticket import StageType, STAGE_ORDER, STAGE_TITLES

WINDOW_DAYS = 14


@dataclass(frozen=True)
class GanttSpan:
    stage_type: StageType
    title: str
    status: str
    start: date
    end: date

    def to_dict(self):
        return {
            'stage_type': self.stage_type.value,
            'title': self.title,
            'status': self.status,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
        }


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_gantt_spans(stages: Iterable, ticket_created_at) -> List[GanttSpan]:
    """Build one span per stage that has an expected_date, in enumeration order.

    start: completion of the immediately preceding stage type if it is completed,
    else the stage's own creation, else the ticket creation.
    end: expected_date, pushed to start + 1 day when it falls before start.
    """
    by_type = {}
    for s in stages:
        by_type[StageType(s.stage_type)] = s
    spans: List[GanttSpan] = []
    for stage_type in STAGE_ORDER:
        stage = by_type.get(stage_type)
        if stage is None or stage.expected_date is None:
            continue
        prev = by_type.get(stage_type.previous) if stage_type.previous else None
        start = (
            _as_date(prev.completed_at if prev is not None else None)
            or _as_date(stage.created_at)
            or _as_date(ticket_created_at)
        )
        end = _as_date(stage.expected_date)
        if end < start:
            end = start + timedelta(days=1)
        spans.append(GanttSpan(stage_type, STAGE_TITLES[stage_type], stage.status, start, end))
    return spans


def window_positions(spans: Iterable[GanttSpan], today: date, days: int = WINDOW_DAYS) -> List[dict]:
    """Place spans on a ``days``-wide window centred on ``today``.

    offset/width are day counts clamped to the window; spans entirely outside it
    get width 0.
    """
    window_start = today - timedelta(days=days // 2)
    window_end = window_start + timedelta(days=days)
    out = []
    for span in spans:
        lo = max(span.start, window_start)
        hi = min(span.end, window_end)
        width = max((hi - lo).days, 0)
        out.append({
            'stage_type': span.stage_type.value,
            'offset': max((lo - window_start).days, 0) if width else 0,
            'width': width,
        })
    return out


__all__ = ['GanttSpan', 'compute_gantt_spans', 'window_positions', 'WINDOW_DAYS']
