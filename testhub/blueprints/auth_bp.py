"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/register    — Email + password + names → user + JWT pair
  POST /api/v1/auth/login       — Email + password → JWT pair
  POST /api/v1/auth/refresh     — Refresh token → new JWT pair
  GET  /api/v1/auth/me          — Current user profile and memberships
"""

import jwt as pyjwt
from flask import Blueprint, jsonify

from testhub.blueprints import json_body
from testhub.core.exceptions import AuthenticationError, ValidationError
from testhub.middleware.jwt_auth import current_principal
from testhub.services.company_service import list_my_companies
from testhub.services.jwt_service import decode_refresh_token, generate_token_pair
from testhub.services.user_service import authenticate_user, get_user_by_id, register_user

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


def _token_response(user, status):
    tokens = generate_token_pair(user.id, user.email)
    return jsonify({
        "access_token": tokens["access_token"],
        "refresh_token": tokens["refresh_token"],
        "token_type": tokens["token_type"],
        "expires_in": tokens["expires_in"],
        "user": user.to_dict(),
    }), status


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Self-registration; the new user gets the global USER role.

    Body: { "email": "...", "password": "...", "first_name": "...", "last_name": "..." }
    """
    data = json_body()
    user = register_user(
        data.get("email"),
        data.get("password"),
        data.get("first_name", ""),
        data.get("last_name", ""),
    )
    return _token_response(user, 201)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return JWT pair.

    Body: { "email": "...", "password": "..." }
    """
    data = json_body()
    if not data.get("email") or not data.get("password"):
        raise ValidationError("Email and password are required")
    user = authenticate_user(data["email"], data["password"])
    return _token_response(user, 200)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/refresh
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """
    Exchange a refresh token for a new token pair.

    Body: { "refresh_token": "..." }
    """
    refresh_token = json_body().get("refresh_token", "")
    if not refresh_token:
        raise ValidationError("Refresh token is required")

    try:
        payload = decode_refresh_token(refresh_token)
    except pyjwt.InvalidTokenError:
        raise AuthenticationError("Invalid or expired refresh token") from None

    user = get_user_by_id(payload["sub"])
    if user is None:
        raise AuthenticationError("User not found")
    return _token_response(user, 200)


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
def me():
    """Current user profile with the companies the user belongs to."""
    user = current_principal()
    return jsonify({
        "user": user.to_dict(),
        "companies": [
            {"id": company.id, "name": company.name, "role": role}
            for company, role in list_my_companies(user)
        ],
    }), 200
