# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User


def require_user(f):
    """
    Resolve the acting user from the X-User-Id header.

    Authentication is handled upstream; this only checks the id against
    the user directory and sets g.current_user.

    Returns 401 if the header is missing or malformed, 403 if the user
    is unknown or disabled.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw:
            return jsonify({"error": "X-User-Id header required"}), 401
        if not raw.isdigit():
            return jsonify({"error": "X-User-Id must be an integer"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Unknown or disabled user"}), 403

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function
