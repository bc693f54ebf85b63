"""
Studio Client Portal
Authentication & Authorization decorators.

Provides:
    - login_required: a valid JWT identity must be present
    - role_required:  the identity must carry one of the given roles
    - current_actor:  (user_id, role) of the caller for service calls

Security model:
    - Identity comes from ``app.middleware.jwt_auth`` (Bearer token)
    - Admins act on every project; clients only on their own
    - API_AUTH_ENABLED=false (development, tests) turns every caller into an
      anonymous admin so the API can be driven without tokens
"""

import functools
import logging
import os

from flask import current_app, g

from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _is_auth_enabled() -> bool:
    """Check whether authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        raw = current_app.config.get("API_AUTH_ENABLED", "true")
    except RuntimeError:
        # Outside app context
        return True
    return str(raw).lower() not in ("false", "0", "no", "off")


def login_required(f):
    """
    Decorator: require an authenticated caller.

    When auth is disabled, the caller is treated as an admin with no user id.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not _is_auth_enabled():
            if not getattr(g, "current_user_role", None):
                g.current_user_role = "admin"
            return f(*args, **kwargs)

        if getattr(g, "current_user_id", None) is None:
            message = getattr(g, "jwt_error", None) or "Authentication required"
            return api_error(E.UNAUTHORIZED, message)
        return f(*args, **kwargs)

    return decorated


def role_required(*roles: str):
    """
    Decorator: require one of *roles*. Implies ``login_required``.

    Usage:
        @role_required("admin")
        def archive_project(project_id): ...
    """
    def decorator(f):
        @login_required
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_role = getattr(g, "current_user_role", None)
            if user_role not in roles:
                logger.warning(
                    "Access denied: role '%s' tried to access %s-only endpoint",
                    user_role, "/".join(roles),
                    extra={"user_id": getattr(g, "current_user_id", None)},
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")
            return f(*args, **kwargs)

        return decorated

    return decorator


def current_actor() -> tuple[int | None, str]:
    """Return ``(user_id, role)`` for the current request."""
    return getattr(g, "current_user_id", None), getattr(g, "current_user_role", None) or "admin"
