"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

  Authorization: Bearer <access token>  →  g.jwt_user_id, g.jwt_email

Missing, expired or invalid tokens leave both attributes as None; the
endpoint decides. ``current_principal()`` is what endpoints call to get the
authenticated ``User`` or a 401.
"""

import logging

import jwt as pyjwt
from flask import g, request

from testhub.core.exceptions import AuthenticationError
from testhub.models import db
from testhub.models.auth import User
from testhub.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/refresh",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_email = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.debug("Invalid access token on %s", path)
            return
        g.jwt_user_id = payload["sub"]
        g.jwt_email = payload.get("email")


def current_principal() -> User:
    """The authenticated user of this request.

    Raises:
        AuthenticationError: No valid token, or its user no longer exists.
    """
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        raise AuthenticationError("Authentication required")
    user = db.session.get(User, user_id)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user
