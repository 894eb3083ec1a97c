# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- POST /api/auth/login   -> session token
- POST /api/auth/logout  -> revoke current token
- GET  /api/auth/me      -> current user and permissions
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, bearer_token
from ..permissions import role_permissions
from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthError
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["permissions"] = sorted(role_permissions(user.role))
    return data


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        session, token = session_service.create_session(user.id)

        current_app.logger.info("User %s logged in", user.username)
        return jsonify({
            "user": _user_payload(user),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
        }), 200

    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token. Unknown tokens are not an error."""
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authentication required"}), 401
    revoked = session_service.revoke_session(token)
    return jsonify({"revoked": revoked}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": _user_payload(g.current_user)}), 200
