# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from . import permissions
from .permissions import PermissionDenied


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'role')


def require_auth(f):
    """
    Require a valid Bearer token.

    Sets on Flask g:
    - g.current_user: the authenticated User
    - g.role: role captured at sign-in
    - g.token: the plaintext token (for sign-out)

    Returns 401 on a missing, unknown, expired or revoked token.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.role = context.role
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a role capability; 403 otherwise. Stack under @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permissions.require_permission(g.role, permission_code)
            except PermissionDenied as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": str(e)
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def can_view_prices() -> bool:
    return _is_authenticated() and permissions.has_permission(g.role, "VIEW_PRICES")
