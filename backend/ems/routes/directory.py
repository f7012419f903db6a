from __future__ import annotations
from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token
from ems.constants.roles import ALL_ROLES, DEMO_USERS, ROLE_ADMIN
from ems.decorators.auth import require_role
from ems.services.records import User
from ems.services.policy import current_actor
from ems.services.wiring import sql_store

dir_bp = Blueprint('directory', __name__)


def _token_for(user: User) -> str:
    claims = {'role': user.role, 'name': user.name, 'branch_id': user.branch_id}
    # identity must be a string for flask-jwt-extended v4
    return create_access_token(identity=str(user.id), additional_claims=claims)


@dir_bp.post('/session')
def open_session():
    """Pick a directory user for the requested role and issue a token.

    Identity only: there are no passwords. Without a matching directory user
    the built-in demo identity for the role is used.
    """
    data = request.get_json(silent=True) or {}
    role = data.get('role')
    if role not in ALL_ROLES:
        abort(400, description=f"role must be one of {', '.join(ALL_ROLES)}")
    wanted = data.get('userId')
    candidates = [u for u in sql_store().get_users() if u.role == role]
    if wanted:
        candidates = [u for u in candidates if u.id == wanted]
        if not candidates:
            abort(404, description=f'user {wanted} not found for role {role}')
    if candidates:
        user = candidates[0]
    else:
        demo = DEMO_USERS[role]
        user = User(demo['id'], demo['name'], demo['role'], demo['branchId'])
    return {'access_token': _token_for(user), 'user': user.to_dict()}


@dir_bp.get('/me')
@require_role()
def me():
    actor = current_actor()
    return {'id': actor.id, 'name': actor.name, 'role': actor.role, 'branchId': actor.branch_id}


@dir_bp.get('/branches')
@require_role()
def list_branches():
    return {'data': [b.to_dict() for b in sql_store().get_branches()]}


@dir_bp.get('/users')
@require_role(ROLE_ADMIN)
def list_users():
    role = request.args.get('role')
    users = sql_store().get_users()
    if role:
        users = [u for u in users if u.role == role]
    return {'data': [u.to_dict() for u in users]}
