from functools import wraps
from flask import g, jsonify

from services.credentials import credentials_for


def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    Puts the caller's Credentials on g.credentials for the view.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required", kind="unauthenticated"), 401

            credentials = credentials_for(user)
            if credentials.role not in role_names:
                return jsonify(error="Forbidden", kind="unauthorized"), 403

            g.credentials = credentials
            return fn(*args, **kwargs)
        return wrapper
    return decorator
