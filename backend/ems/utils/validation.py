from __future__ import annotations
"""Small value validators shared by routes and services.

They raise ``ValidationError`` so callers outside a request get the same
400 semantics as HTTP clients.
"""
from typing import Any, Iterable, Optional

from ems.errors import ValidationError


def validate_choice(value: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Return ``value`` if it is one of ``allowed`` (enables inline usage)."""
    if value not in allowed:
        raise ValidationError(f"{field_name} invalid", fields=[field_name])
    return value


def require_text(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{key} required', fields=[key])
    return value.strip()


def optional_int(data: dict, key: str) -> Optional[int]:
    raw: Any = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError(f'{key} must be an integer', fields=[key])
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f'{key} must be an integer', fields=[key])


__all__ = ['validate_choice', 'require_text', 'optional_int']
