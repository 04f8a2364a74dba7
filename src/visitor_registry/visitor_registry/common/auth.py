from __future__ import annotations

from functools import wraps

from flask import jsonify, session

from ..core.enums import Role
from ..core.identity import Actor


def current_actor() -> Actor:
    """Identity issued by the external auth layer and stored in the session."""
    return Actor(
        name=str(session.get("name") or session.get("username") or session.get("user_id")),
        role=session.get("role"),
        user_id=session.get("user_id"),
    )


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"success": False, "message": "Authentication required"}), 401
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return jsonify({"success": False, "message": "Authentication required"}), 401
        if session.get("role") != Role.ADMIN.value:
            return jsonify({"success": False, "message": "Admin role required", "error": "AuthorizationError"}), 403
        return view(*args, **kwargs)

    return wrapper
