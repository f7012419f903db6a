from __future__ import annotations
"""Domain error taxonomy.

Core modules raise these instead of calling ``flask.abort`` so they stay usable
without a request context. The application factory renders every ``EmsError``
with the same JSON error shape used for HTTP exceptions.
"""
from typing import Iterable, List, Optional


class EmsError(Exception):
    status = 400
    title = 'Bad Request'

    def __init__(self, detail: str = ''):
        super().__init__(detail)
        self.detail = detail or self.title

    def to_payload(self) -> dict:
        return {'status': self.status, 'title': self.title, 'detail': self.detail}


class ValidationError(EmsError):
    """Required field missing or value of the wrong shape. Blocks navigation, never fatal."""

    def __init__(self, detail: str = 'Validation failed', fields: Optional[Iterable[str]] = None):
        super().__init__(detail)
        self.fields: List[str] = list(fields or [])

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.fields:
            payload['fields'] = self.fields
        return payload


class NotFoundError(EmsError):
    status = 404
    title = 'Not Found'


class FieldNotFoundError(NotFoundError):
    def __init__(self, section: str, field_id: str):
        super().__init__(f'field {field_id} not found in {section}')
        self.section = section
        self.field_id = field_id


class ReportNotFoundError(NotFoundError):
    def __init__(self, report_id: str):
        super().__init__(f'report {report_id} not found')
        self.report_id = report_id


class DuplicateFieldError(EmsError):
    status = 409
    title = 'Conflict'


class ConfigConflictError(EmsError):
    status = 409
    title = 'Conflict'

    def __init__(self, expected: int, actual: int):
        super().__init__(f'config version {expected} is stale (current {actual})')
        self.expected = expected
        self.actual = actual


class InvalidTransitionError(EmsError):
    def __init__(self, current: str, target: str, field_name: str = 'status'):
        super().__init__(f'Invalid {field_name} transition {current} -> {target}')
        self.current = current
        self.target = target


class PersistenceError(EmsError):
    status = 503
    title = 'Service Unavailable'


class LocationUnavailableError(EmsError):
    status = 422
    title = 'Location Unavailable'


class MalformedConfigError(EmsError):
    status = 500
    title = 'Malformed Config'


__all__ = [
    'EmsError', 'ValidationError', 'NotFoundError', 'FieldNotFoundError', 'ReportNotFoundError',
    'DuplicateFieldError', 'ConfigConflictError', 'InvalidTransitionError', 'PersistenceError',
    'LocationUnavailableError', 'MalformedConfigError',
]
