"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Blueprint name → limit string
BLUEPRINT_LIMITS = {
    "auth": "10/minute",
    "document": "30/minute",
    "phase": "60/minute",
    "project": "60/minute",
    "payment": "120/minute",
}


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Login:            10/minute  (credential stuffing)
        - Document render:  30/minute  (PDF rendering is CPU bound)
        - Phase / project:  60/minute
        - Payment webhook:  120/minute (provider retries arrive in bursts)
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — %s",
        ", ".join(f"{name}: {limit}" for name, limit in BLUEPRINT_LIMITS.items()),
    )
