"""
Health probes.

    GET /api/v1/health/ready   process is up
    GET /api/v1/health/live    database round-trip plus integration modes

``live`` answers 503 only when a required dependency (the database) is
down.  Integration entries report their mode and never degrade the probe.
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


def _check_database() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Database probe failed: %s", exc)
        return {"status": "error", "detail": exc.__class__.__name__}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _integration_modes(config) -> dict:
    return {
        "payment_webhook": {
            "status": "ok" if config.get("PAYMENT_WEBHOOK_SECRET") else "not_configured",
        },
        "email": {"status": "smtp" if config.get("MAIL_SERVER") else "log_only"},
    }


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {"database": _check_database()}
    checks.update(_integration_modes(current_app.config))
    checks["app"] = {"env": current_app.config.get("ENV_NAME"), "testing": current_app.testing}

    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
