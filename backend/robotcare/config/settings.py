"""Configuration defaults. Values come from the environment (``.env`` honoured via
python-dotenv in the app factory) and may be overridden by the dict passed to
``create_app``."""
import os

DEFAULT_LIMIT = 50
MAX_LIMIT = 200

DEFAULTS = {
    'DATABASE_URL': 'sqlite:///dev.db',
    'JWT_SECRET_KEY': 'dev-secret',
    'WORKFLOW_STRICT_STAGE_ORDER': False,
    'NOTIFY_WEBHOOK_URL': None,
    'NOTIFY_TIMEOUT_SECONDS': 5,
    'NOTIFY_MAX_ATTEMPTS': 5,
    'ENGINEER_BUSY_THRESHOLD': 3,
    'CROSS_TENANT_POLICY': 'not_found',
}

_BOOL_KEYS = {'WORKFLOW_STRICT_STAGE_ORDER'}
_INT_KEYS = {'NOTIFY_TIMEOUT_SECONDS', 'NOTIFY_MAX_ATTEMPTS', 'ENGINEER_BUSY_THRESHOLD'}


def _coerce(key, raw):
    if key in _BOOL_KEYS:
        return str(raw).strip().lower() in ('1', 'true', 'yes', 'on')
    if key in _INT_KEYS:
        return int(raw)
    return raw


def load_settings(environ=None):
    """Merge environment variables over DEFAULTS (unknown keys ignored)."""
    environ = os.environ if environ is None else environ
    out = dict(DEFAULTS)
    for key in DEFAULTS:
        if environ.get(key) not in (None, ''):
            out[key] = _coerce(key, environ[key])
    if out['CROSS_TENANT_POLICY'] not in ('not_found', 'forbidden'):
        raise ValueError('CROSS_TENANT_POLICY must be not_found or forbidden')
    return out


def normalize_pagination(limit_raw, offset_raw):
    try:
        limit = int(limit_raw) if limit_raw is not None else DEFAULT_LIMIT
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset
