from __future__ import annotations
"""Audit logging decorator for route handlers.

@audit_log('REPORT.CREATE', entity='Report', entity_id_key='id', meta_keys=['status', 'priority'])
def create_report(): ...

@audit_log('REPORT.ASSIGN', entity='Report', entity_id_arg='report_id',
           meta_builder=lambda data, rv, args, kwargs: {'technician': data['report']['assignedTechnicianId']})
def assign_report(report_id): ...

Parameters:
  action: audit action code
  entity: entity label (Report, Config, SparePart)
  entity_id_key: key (dotted for nested) in the returned JSON whose value becomes entity_id
  entity_id_arg: view kwarg used when the key is absent
  meta_keys: keys projected from the returned JSON into meta
  meta_builder: callable(data, rv, args, kwargs) -> dict; overrides meta_keys
  diff_keys / pre_fetch: record before/after values of these (dotted) keys;
    pre_fetch(args, kwargs) returns the before values under the same keys

Views return dict, (dict, status) or (dict, status, headers); the first element
is inspected and the original return value is passed through untouched. The
audit row is written only when the view returns normally.
"""
import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from ems import get_db
from ems.services.audit import add_audit

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def _dig(data: Dict[str, Any], key: str):
    """Resolve a dotted key such as ``report.id``."""
    value: Any = data
    for part in key.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _changes(before: Dict[str, Any], data: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    out = {}
    for k in keys:
        if k not in before:
            continue
        after = _dig(data, k)
        if before[k] != after:
            out[k] = {'before': before[k], 'after': after}
    return out


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if diff_keys and pre_fetch else None
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            if not isinstance(data, dict):
                data = {}
            entity_id = _dig(data, entity_id_key) if entity_id_key else None
            if entity_id is None and entity_id_arg:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs) or {}
            else:
                meta = {k: data.get(k) for k in (meta_keys or []) if k in data}
            if diff_keys and isinstance(before, dict):
                changes = _changes(before, data, diff_keys)
                if changes:
                    meta['changes'] = changes
            add_audit(action, entity, entity_id, meta)
            if commit:
                try:
                    get_db().commit()
                except SQLAlchemyError:
                    # main change is already committed
                    get_db().rollback()
                    logger.exception('audit commit failed for %s', action)
            return rv
        return wrapper
    return outer
