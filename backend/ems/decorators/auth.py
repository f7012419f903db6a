from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from ems.services.policy import has_role


def require_role(*roles: str):
    """Require a valid access token; with roles given, the token's role must be one of them."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if roles and not has_role(*roles):
                abort(403, description='Role not allowed')
            return fn(*args, **kwargs)
        return wrapper
    return outer
