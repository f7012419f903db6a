from __future__ import annotations
"""Role checks over the access token claims.

Tokens carry the user id as identity plus ``role``, ``name`` and
``branch_id`` claims; there is no permission table.
"""
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity

from ems.constants.roles import ROLE_ADMIN, ROLE_BRANCH_MANAGER, ROLE_TECHNICIAN
from ems.services.records import Actor, Report


def current_actor() -> Actor:
    claims = get_jwt()
    return Actor(
        id=str(get_jwt_identity()),
        name=claims.get('name') or '',
        role=claims.get('role') or '',
        branch_id=claims.get('branch_id'),
    )


def has_role(*roles: str) -> bool:
    return get_jwt().get('role') in roles


def assert_branch_access(branch_id: str, actor: Actor | None = None):
    actor = actor or current_actor()
    if actor.role == ROLE_BRANCH_MANAGER and actor.branch_id != branch_id:
        abort(403, description='Branch access denied')


def assert_report_access(report: Report, actor: Actor | None = None):
    """Managers see their branch, technicians see what is assigned to them (or still unassigned)."""
    actor = actor or current_actor()
    if actor.role == ROLE_ADMIN:
        return
    if actor.role == ROLE_BRANCH_MANAGER:
        assert_branch_access(report.branch_id, actor)
        return
    if actor.role == ROLE_TECHNICIAN and report.assigned_technician_id in (None, actor.id):
        return
    abort(403, description='Report access denied')
