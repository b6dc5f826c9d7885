"""
Auth Blueprint — account and JWT endpoints.

Endpoints:
  POST /api/v1/auth/register    — username + password (+ role) → user
  POST /api/v1/auth/login       — username + password → access token
  GET  /api/v1/auth/me          — Current user profile
"""

from flask import Blueprint, current_app, g, jsonify, request

from taskflow.middleware.permission_required import login_required
from taskflow.models.auth import Role
from taskflow.services.jwt_service import generate_access_token
from taskflow.services.user_service import (
    UserServiceError,
    authenticate_user,
    register_user,
)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create an account.

    Body: { "username": "...", "password": "...", "role": 0 }
    ``role`` may be an int, a role name, or the legacy ``is_admin`` flag.
    """
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return jsonify({"error": "Username and password are required"}), 400

    if "role" in data:
        role = data["role"]
    elif "is_admin" in data:
        role = Role.from_legacy(data["is_admin"])
    else:
        role = Role.DESIGNER

    user = register_user(username, password, role)
    return jsonify({"message": "User created", "user": user.to_dict()}), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with username + password, return an access token.

    Body: { "username": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return jsonify({"error": "Username and password are required"}), 400

    try:
        user = authenticate_user(username, password)
    except UserServiceError as e:
        return jsonify({"error": e.message}), e.status_code

    return jsonify({
        "access_token": generate_access_token(user),
        "token_type": "Bearer",
        "expires_in": current_app.config.get("JWT_ACCESS_EXPIRES", 86400),
        "user": user.to_dict(),
    }), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(g.current_user.to_dict()), 200
