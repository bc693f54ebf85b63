"""
Shared pytest fixtures for the Studio Client Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin_user / client_user: pre-created accounts
    - make_project: factory creating a project with provisioned phases
    - sign_webhook: builds a valid Stripe-Signature header for a body
"""

import time

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import User
from app.services import project_service
from app.utils.crypto import sign_payload

WEBHOOK_SECRET = "whsec_test_secret"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


def _make_user(email, role="client", full_name=None):
    user = User(email=email, full_name=full_name or email.split("@")[0].title(), role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin_user():
    return _make_user("studio@example.com", role="admin", full_name="Studio Admin")


@pytest.fixture()
def client_user():
    return _make_user("client@example.com", full_name="Casey Client")


@pytest.fixture()
def make_project(client_user):
    """Factory: ``make_project(service_types=None, **kwargs)`` → project dict."""

    def _factory(service_types=None, name="Acme rebrand", **kwargs):
        return project_service.create_project(
            name,
            kwargs.pop("client_id", client_user.id),
            service_types,
            **kwargs,
        )

    return _factory


@pytest.fixture()
def project(make_project):
    """Project with the default eight-phase sequence."""
    return make_project()


@pytest.fixture()
def sign_webhook():
    """Return ``sign(body: bytes, secret=..., timestamp=None) -> header``."""

    def _sign(body, secret=WEBHOOK_SECRET, timestamp=None):
        ts = int(time.time()) if timestamp is None else timestamp
        return f"t={ts},v1={sign_payload(secret, ts, body)}"

    return _sign
