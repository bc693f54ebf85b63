"""
Studio Client Portal
Configuration classes for the Flask app factory.

``APP_ENV`` picks one of ``config``'s entries; the factory instantiates it so
``ProductionConfig`` can refuse to boot with missing secrets.
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'studio_portal_dev.db')}"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _database_url(fallback: str | None) -> str | None:
    # Hosted Postgres often hands out postgres://, which SQLAlchemy 2 rejects.
    raw = os.getenv("DATABASE_URL", "")
    if not raw:
        return fallback
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    ENV_NAME = "base"
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}
    AUTO_CREATE_TABLES = _env_flag("AUTO_CREATE_TABLES", "true")

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED", "true")

    # Auth (JWT_SECRET_KEY unset -> SECRET_KEY signs tokens)
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = _env_int("JWT_ACCESS_EXPIRES", 3600)

    # Payment provider webhook, Stripe-style "t=...,v1=..." signatures
    PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")
    PAYMENT_WEBHOOK_TOLERANCE = _env_int("PAYMENT_WEBHOOK_TOLERANCE", 300)

    # Outbound email; no MAIL_SERVER means log-only delivery
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = _env_int("MAIL_PORT", 587)
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "studio@client-portal.local")
    EMAIL_MAX_ATTEMPTS = _env_int("EMAIL_MAX_ATTEMPTS", 3)
    PORTAL_BASE_URL = os.getenv("PORTAL_BASE_URL", "http://localhost:5173")

    # Phase tracker
    PHASE_ENFORCE_ORDER = _env_flag("PHASE_ENFORCE_ORDER", "true")
    PHASE_LABELS = None
    SERVICE_TYPES = None


class DevelopmentConfig(Config):
    ENV_NAME = "development"
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(_SQLITE_DEV)


class TestingConfig(Config):
    ENV_NAME = "testing"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    AUTO_CREATE_TABLES = True
    RATELIMIT_ENABLED = False
    API_AUTH_ENABLED = "false"
    JWT_SECRET_KEY = "test-jwt-secret-0123456789abcdef0123456789"
    PAYMENT_WEBHOOK_SECRET = "whsec_test_secret"
    MAIL_SERVER = None


class ProductionConfig(Config):
    """Postgres, auth on, no wildcard CORS; required secrets checked at boot."""

    ENV_NAME = "production"
    SQLALCHEMY_DATABASE_URI = _database_url(None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        for name in ("SECRET_KEY", "PAYMENT_WEBHOOK_SECRET"):
            if not os.getenv(name):
                raise RuntimeError(f"{name} environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
