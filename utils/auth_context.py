from functools import wraps
from flask import g, jsonify

from models import db
from models.user import User
from security.session import get_session_from_request


def load_current_user():
    """Resolve ``g.user`` from the request's session token (or leave it None)."""
    g.user = None
    g.session = get_session_from_request()
    if g.session is not None:
        g.user = db.session.get(User, g.session.user_id)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("user") is None:
            return jsonify(error="Authentication required", code="Unauthenticated"), 401
        return fn(*args, **kwargs)
    return wrapper
