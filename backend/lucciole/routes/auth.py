# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/lucciole/routes/auth.py
"""
Authentication API routes

- Identifier is a bare username ("admin") or an email; the static role table
  decides the role
- Session token returned on login, sent back as "Authorization: Bearer <token>"
- Logout revokes the token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services.auth_service import AuthFailure
from ..decorators import require_auth
from ..permissions import permissions_for


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Body: {"identifier": "...", "password": "..."} (username/email accepted as aliases)
    """
    data = request.get_json(silent=True) or {}
    identifier = data.get("identifier") or data.get("username") or data.get("email")
    password = data.get("password")

    if not all([identifier, password]):
        return jsonify({"error": "identifier and password required"}), 400

    try:
        result = auth_service.sign_in(identifier, password)
    except AuthFailure as e:
        current_app.logger.info("Sign-in refused for %s: %s", identifier, e)
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Sign-in failed unexpectedly")
        return jsonify({"error": "Sign-in failed"}), 500

    return jsonify({
        "user": result.user.to_dict(),
        "role": result.role,
        "permissions": permissions_for(result.role),
        "token": result.token,
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    auth_service.sign_out(g.token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current identity, role and the capabilities that role holds."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "role": g.role,
        "permissions": permissions_for(g.role),
    }), 200
