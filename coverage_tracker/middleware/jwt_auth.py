"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_user_id.

The middleware never rejects a request on its own. Routes that need an
authenticated user are wrapped in ``login_required``, which turns a missing
``g.jwt_user_id`` into a 401.
"""

import logging

import jwt as pyjwt
from flask import g, request

from coverage_tracker.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/auth/login",
    "/api/auth/register",
    "/api/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/"):
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
            logger.info("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Rejected access token on %s: %s", path, exc)
            return

        g.jwt_user_id = payload.get("sub")
        g.jwt_role = payload.get("role")
