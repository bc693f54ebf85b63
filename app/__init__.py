"""
Studio Client Portal
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app.config import config
from app.core.exceptions import (
    AuthError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    SignatureVerificationError,
    ValidationError,
)
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)

# Paths whose body is not JSON (raw provider payloads)
_RAW_BODY_PATHS = ("/api/v1/payments/webhook",)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware ───────────────────────────────────────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    @app.before_request
    def _guard_request():
        # Input length cap
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")
        # Content-Type validation for mutating methods
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            if request.path.startswith(_RAW_BODY_PATHS):
                return None
            ct = request.content_type or ""
            if request.content_length and "json" not in ct:
                return api_error(E.UNSUPPORTED_MEDIA, "Content-Type must be application/json")
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import activity as _activity_models      # noqa: F401
    from app.models import auth as _auth_models              # noqa: F401
    from app.models import document as _document_models      # noqa: F401
    from app.models import project as _project_models        # noqa: F401
    from app.models import scheduling as _scheduling_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if app.config.get("AUTO_CREATE_TABLES", True):
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except SQLAlchemyError as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Phase catalog ────────────────────────────────────────────────────
    from app.services.phase_catalog import init_phase_catalog
    init_phase_catalog(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.document_bp import document_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.payment_bp import payment_bp
    from app.blueprints.phase_bp import phase_bp
    from app.blueprints.project_bp import project_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(document_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(phase_bp)
    app.register_blueprint(project_bp)

    _register_error_handlers(app)
    init_rate_limits(app, limiter)

    # ── Scheduler (job registry populated on import) ─────────────────────
    from app.services import scheduled_jobs as _scheduled_jobs  # noqa: F401
    from app.services.scheduler_service import SchedulerService
    SchedulerService.init_app(app)

    _register_cli(app)

    logger.info("Studio Client Portal started (env=%s)", config_name)
    return app


def _register_error_handlers(app):
    """Map service exceptions and HTTP errors to the standard JSON body."""

    @app.errorhandler(ValidationError)
    def _validation(error):
        return api_error(E.VALIDATION_CONSTRAINT, str(error), details=error.details)

    @app.errorhandler(NotFoundError)
    def _not_found_error(error):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ConflictError)
    def _conflict(error):
        return api_error(E.CONFLICT_STATE, str(error),
                         details={"field": error.field, "value": error.value})

    @app.errorhandler(AuthError)
    def _auth(error):
        return api_error(E.UNAUTHORIZED, str(error) or "Authentication required")

    @app.errorhandler(PermissionDenied)
    def _forbidden(error):
        return api_error(E.FORBIDDEN, str(error) or "Permission denied")

    @app.errorhandler(SignatureVerificationError)
    def _signature(error):
        return api_error(E.SIGNATURE, str(error))

    @app.errorhandler(ConfigurationError)
    def _configuration(error):
        logger.error("Configuration error: %s", error)
        return api_error(E.CONFIG, str(error))

    @app.errorhandler(404)
    def _not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(413)
    def _too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(415)
    def _unsupported(e):
        return api_error(E.UNSUPPORTED_MEDIA, "Content-Type must be application/json")

    @app.errorhandler(429)
    def _rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests")

    @app.errorhandler(SQLAlchemyError)
    def _database(error):
        db.session.rollback()
        logger.exception("Database error: %s", error)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(500)
    def _server_error(e):
        original = getattr(e, "original_exception", None)
        logger.error("500 error: %s", original or e, exc_info=original)
        return api_error(E.INTERNAL, "Internal server error")

    @app.errorhandler(HTTPException)
    def _http_exception(e):
        return api_error(E.INTERNAL if e.code >= 500 else E.VALIDATION_INVALID,
                         e.description or e.name, status=e.code)


def _register_cli(app):
    """Operator commands (``flask run-job``, ``flask seed-demo``)."""

    @app.cli.command("run-job")
    @click.argument("name")
    def run_job_cmd(name):
        """Run one polling job now (email_queue_drain, weekly_project_summary)."""
        from app.services.scheduler_service import SchedulerService
        SchedulerService.ensure_jobs_registered()
        outcome = SchedulerService.run_job(name)
        click.echo(f"{name}: {outcome['status']} {outcome.get('result') or outcome.get('error') or ''}")
        if outcome["status"] in ("error", "failed"):
            raise SystemExit(1)

    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed a demo admin, a client and two projects."""
        from app.services.demo_seed_service import seed_demo_data
        summary = seed_demo_data()
        click.echo(f"Seeded demo data: {summary}")
