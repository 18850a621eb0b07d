"""Decorators for authenticated routes."""

from functools import wraps

from flask import g, jsonify


def login_required(f):
    """Reject the request with 401 unless a caller identity was resolved.

    Usage:
    @login_required
    def protected_view():
        ...
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get("user_id") is None:
            return jsonify({"message": "Authentication required"}), 401
        return f(*args, **kwargs)

    return decorated_function
