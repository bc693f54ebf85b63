"""
Tests — app factory wiring: health checks, error envelopes, request guards.
"""

import pytest

from app.config import ProductionConfig


def test_health_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_health_live(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["email"]["status"] == "log_only"
    assert body["checks"]["payment_webhook"]["status"] == "ok"


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/does-not-exist")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_method_not_allowed(client):
    res = client.delete("/api/v1/health/ready")
    assert res.status_code == 405
    assert res.get_json()["code"] == "ERR_METHOD_NOT_ALLOWED"


def test_non_json_body_is_415(client):
    res = client.post("/api/v1/projects", data="name=x", content_type="text/plain")
    assert res.status_code == 415
    assert res.get_json()["code"] == "ERR_UNSUPPORTED_MEDIA"


def test_oversized_body_is_413(app, client, monkeypatch):
    monkeypatch.setitem(app.config, "MAX_CONTENT_LENGTH", 16)
    res = client.post("/api/v1/projects", json={"name": "x" * 64, "client_id": 1})
    assert res.status_code == 413


def test_response_headers(client):
    res = client.get("/api/v1/health/ready")
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"
    assert res.headers["X-Request-ID"]
    assert "X-Request-Duration-Ms" in res.headers


def test_request_id_is_echoed(client):
    res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Request-ID"] == "abc123"


def test_cli_run_job(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["run-job", "email_queue_drain"])
    assert result.exit_code == 0
    assert "email_queue_drain: success" in result.output


def test_cli_seed_demo(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "'created': True" in result.output

    again = runner.invoke(args=["seed-demo"])
    assert "'created': False" in again.output


def test_factory_uses_testing_config(app):
    assert app.config["TESTING"] is True
    assert app.config["ENV_NAME"] == "testing"
    assert "phase_catalog" in app.extensions
    assert "scheduler" in app.extensions


def test_production_config_requires_database_url(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        ProductionConfig()


def test_production_config_requires_webhook_secret(monkeypatch):
    monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/portal")
    monkeypatch.setenv("SECRET_KEY", "prod-secret")
    monkeypatch.delenv("PAYMENT_WEBHOOK_SECRET", raising=False)
    with pytest.raises(RuntimeError, match="PAYMENT_WEBHOOK_SECRET"):
        ProductionConfig()
