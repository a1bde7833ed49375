"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/auth/register   — Create account → user + access token
  POST /api/auth/login      — Username + password → user + access token
  GET  /api/auth/user       — Current user profile
"""

from flask import Blueprint, g, jsonify

from coverage_tracker.middleware.permission_required import login_required
from coverage_tracker.repositories import request_repositories
from coverage_tracker.services.jwt_service import generate_access_token
from coverage_tracker.services.user_service import authenticate_user, register_user
from coverage_tracker.utils.helpers import json_body

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create an account and log it in.

    Body: { "username": "...", "password": "...", "email": "...",
            "first_name": "...", "last_name": "...", "role": "engineer" }
    """
    data = json_body()
    user = register_user(
        request_repositories(),
        username=data.get("username"),
        password=data.get("password"),
        email=data.get("email"),
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        role=data.get("role") or "engineer",
    )
    return jsonify({
        "user": user.to_dict(),
        "token": generate_access_token(user),
    }), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with username + password.

    Body: { "username": "...", "password": "..." }
    """
    data = json_body()
    user = authenticate_user(
        request_repositories(), data.get("username"), data.get("password"),
    )
    return jsonify({
        "user": user.to_dict(),
        "token": generate_access_token(user),
    }), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/auth/user
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/user", methods=["GET"])
@login_required
def current_user():
    """Return the authenticated user's profile."""
    return jsonify(g.current_user.to_dict()), 200
