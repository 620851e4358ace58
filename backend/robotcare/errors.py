"""Domain error taxonomy shared by the workflow engine and the HTTP layer.

Every error carries a stable ``kind`` (machine readable) and the HTTP status the
app-level error handler renders it with. Engine code raises these instead of
calling ``flask.abort`` so it stays usable outside a request.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class WorkflowError(Exception):
    kind = 'workflow_error'
    status_code = 400
    title = 'Bad Request'

    def __init__(self, detail: str = '', meta: Optional[Dict[str, Any]] = None):
        super().__init__(detail or self.title)
        self.detail = detail or self.title
        self.meta = meta or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'status': self.status_code,
            'title': self.title,
            'detail': self.detail,
            'kind': self.kind,
        }
        if self.meta:
            body['meta'] = self.meta
        return body


class Forbidden(WorkflowError):
    kind = 'forbidden'
    status_code = 403
    title = 'Forbidden'


class NotFound(WorkflowError):
    kind = 'not_found'
    status_code = 404
    title = 'Not Found'


class ValidationError(WorkflowError):
    kind = 'validation_error'
    status_code = 400
    title = 'Bad Request'


class Conflict(WorkflowError):
    kind = 'conflict'
    status_code = 409
    title = 'Conflict'


class AlreadyCompleted(Conflict):
    kind = 'already_completed'


class AlreadyConfirmed(Conflict):
    kind = 'already_confirmed'


__all__ = [
    'WorkflowError', 'Forbidden', 'NotFound', 'ValidationError',
    'Conflict', 'AlreadyCompleted', 'AlreadyConfirmed',
]
