"""
JWT Auth Middleware — parses the Bearer token and sets request identity.

    Authorization: Bearer <token>  →  g.current_user_id, g.current_user_role

Requests without a token (or with an invalid one) carry no identity; the
``app.auth`` decorators decide whether that is acceptable for the route.
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
    "/api/v1/payments/webhook",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user_id = None
        g.current_user_role = None
        g.jwt_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.debug("Rejected bearer token: %s", exc)
            g.jwt_error = "Invalid token"
            return

        try:
            g.current_user_id = int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            g.jwt_error = "Invalid token subject"
            return
        g.current_user_role = payload.get("role", "client")
