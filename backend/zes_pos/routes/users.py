# Overview: Flask API routes for user management; parses input and returns JSON responses.

"""
User management routes.

- Owner lists users and adds shopkeepers
- Any signed-in user changes their own password or username
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_permission
from ..services import auth_service, session_service
from ..services.auth_service import AuthError
from ..validation import ValidationError, NotFoundError, ConflictError

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_shopkeeper_route():
    """
    Add a shopkeeper account.

    Request body:
    {
        "username": "counter2",
        "password": "Str0ng!pass",
        "name": "Counter Two"  (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")
    if not all([username, password]):
        return jsonify({"error": "username and password required"}), 400

    try:
        user = auth_service.add_shopkeeper(username, password, name=data.get("name"))
        return jsonify({"user": user.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/me/password")
@require_auth
def change_password_route():
    """
    Change own password. Other sessions of the same user are revoked.

    Request body: {"current_password": "...", "new_password": "..."}
    """
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password")
    new_password = data.get("new_password")
    if not all([current_password, new_password]):
        return jsonify({"error": "current_password and new_password required"}), 400

    try:
        auth_service.change_password(g.current_user.id, current_password, new_password)
        session_service.revoke_all_user_sessions(
            g.current_user.id,
            reason="Password changed",
            keep_session_id=g.session_context.session.id,
        )
        return jsonify({"ok": True}), 200
    except AuthError as e:
        return jsonify({"error": str(e)}), 401
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/me/username")
@require_auth
def rename_route():
    """Request body: {"username": "new_name"}"""
    data = request.get_json(silent=True) or {}
    new_username = data.get("username")
    if not new_username:
        return jsonify({"error": "username required"}), 400

    try:
        user = auth_service.rename_user(g.current_user.id, new_username)
        return jsonify({"user": user.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to rename user")
        return jsonify({"error": "Internal server error"}), 500
