from __future__ import annotations
"""List/detail response helpers: pagination, ETag + Last-Modified validators and
conditional (304) handling shared by every read endpoint."""
from typing import Iterable, Optional, Tuple
from flask import request, make_response
from sqlalchemy.orm import Query
from robotcare.config.settings import normalize_pagination
from robotcare.errors import ValidationError
import hashlib
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime

TIMESTAMP_TOLERANCE = timedelta(seconds=1)

def canonicalize_timestamp(dt: datetime) -> datetime:
    """Return UTC tz-aware timestamp truncated to whole seconds (microseconds removed)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=0)

def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        raise ValidationError(str(e))
    total = q.order_by(None).count()
    return q.offset(offset).limit(limit), total, limit, offset

def compute_etag(ids: Iterable, total: int, limit: int, offset: int, latest_ts: Optional[str] = '') -> str:
    seed = f"{list(ids)}|{total}|{limit}|{offset}|{latest_ts or ''}"
    return hashlib.sha256(seed.encode()).hexdigest()[:32]

def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }

def _http_date(dt: datetime) -> str:
    """Return RFC1123 HTTP-date string in GMT."""
    return format_datetime(dt, usegmt=True)

def _iso(dt: datetime) -> str:
    return dt.isoformat().replace('+00:00', 'Z')

def _set_validators(resp, etag: str, latest_ts: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest_ts:
        latest_c = canonicalize_timestamp(latest_ts)
        resp.headers['Last-Modified'] = _http_date(latest_c)
        resp.headers['X-Last-Modified-ISO'] = _iso(latest_c)
    return resp

def make_cached_list_response(rows: list, total: int, limit: int, offset: int, latest_ts: Optional[datetime] = None):
    ids = [r.get('id') for r in rows]
    latest_iso = _iso(canonicalize_timestamp(latest_ts)) if isinstance(latest_ts, datetime) else ''
    etag = compute_etag(ids, total, limit, offset, latest_iso)
    resp = make_response(build_list_payload(rows, total, limit, offset))
    return _set_validators(resp, etag, latest_ts), etag

def make_cached_detail_response(body: dict, latest_ts: Optional[datetime] = None):
    latest_iso = _iso(canonicalize_timestamp(latest_ts)) if isinstance(latest_ts, datetime) else ''
    etag = compute_etag([body.get('id')], 1, 1, 0, latest_iso)
    resp = make_response(body)
    return _set_validators(resp, etag, latest_ts), etag

def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    if not header_val:
        return None
    try:
        dt = datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        try:
            dt = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
    if dt and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def handle_conditional(etag_value: str, latest_ts: Optional[datetime]):
    """Evaluate conditional request headers.

    Precedence: If-None-Match over If-Modified-Since (per RFC 9110 semantics).
    Returns a 304 response object if conditions satisfied, else None.
    """
    inm = request.headers.get('If-None-Match')
    if inm and inm.strip('"') == etag_value:
        return _set_validators(make_response('', 304), etag_value, latest_ts)
    ims_raw = request.headers.get('If-Modified-Since')
    if ims_raw and latest_ts and not inm:
        ims_dt = _parse_if_modified_since(ims_raw)
        if ims_dt and canonicalize_timestamp(latest_ts) <= canonicalize_timestamp(ims_dt) + TIMESTAMP_TOLERANCE:
            return _set_validators(make_response('', 304), etag_value, latest_ts)
    return None

def respond(resp, etag: str, latest_ts: Optional[datetime]):
    """Return a 304 when the client validators match, else ``resp``; HEAD bodies are stripped."""
    cond = handle_conditional(etag, latest_ts)
    out = cond or resp
    if request.method == 'HEAD':
        out.set_data(b'')
    return out
