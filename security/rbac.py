from functools import wraps
from flask import g, jsonify

from utils.roles import SUPER_ADMIN, filter_role_names


def require_roles(*role_names: str):
    """
    Usage: @require_roles(ADMIN)

    SUPER_ADMIN passes every check. Failures use the same JSON body as
    booking errors so clients can branch on ``code``.
    """
    allowed = set(role_names) | {SUPER_ADMIN}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required", code="Unauthenticated"), 401

            if not allowed.intersection(filter_role_names(user.roles)):
                return jsonify(error="Operator role required", code="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
