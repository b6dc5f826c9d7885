"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.current_user.

Requests without a valid Bearer token proceed with ``g.current_user = None``;
route decorators in ``permission_required`` decide whether that is allowed.
"""

import logging

import jwt as pyjwt
from flask import g, request

from taskflow.models import db
from taskflow.models.auth import User
from taskflow.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)


# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.jwt_payload = None

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

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return

        # A deleted user's token is no longer valid
        g.current_user = db.session.get(User, user_id)
        g.jwt_payload = payload
