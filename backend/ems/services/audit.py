from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt, get_jwt_identity
from flask_jwt_extended.exceptions import JWTExtendedException
from ems import get_db
from ems.models.audit import AuditLog

logger = logging.getLogger(__name__)


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Stage an audit row in the current DB session.

    action: short code e.g. REPORT.CREATE, CONFIG.FIELD.ADD
    entity / entity_id: what was touched
    meta: JSON-safe details (shallow copied)

    The caller's transaction boundary controls durability.
    """
    try:
        claims = get_jwt() or {}
        ident = get_jwt_identity()
    except (RuntimeError, JWTExtendedException):
        # outside a verified request (scripts, tests without auth)
        claims, ident = {}, None
    log = AuditLog(
        actor_user_id=str(ident) if ident is not None else 'anonymous',
        actor_role=claims.get('role'),
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    get_db().add(log)
    return log
