"""
Tests — payment webhook bridge.

Covers:
    1. Signature verification (missing, malformed, wrong secret, stale)
    2. Applying a paid event to a project
    3. Idempotency on redelivery
    4. Ignored event types and unmatched projects
    5. Missing webhook secret
"""

import json
import time

import pytest

from app.core.exceptions import ConfigurationError, SignatureVerificationError
from app.models import db
from app.models.activity import ActivityLog, PaymentEvent
from app.models.project import Project, ProjectPhase
from app.services.payment_service import verify_signature
from app.utils.crypto import sign_payload

WEBHOOK = "/api/v1/payments/webhook"


def _event(project_id, event_id="evt_1", event_type="invoice.paid", key="projectId"):
    return {
        "id": event_id,
        "type": event_type,
        "data": {"object": {"amount_paid": 250000, "currency": "usd", "metadata": {key: project_id}}},
    }


def _post(client, sign_webhook, event, **sign_kwargs):
    body = json.dumps(event).encode("utf-8")
    return client.post(
        WEBHOOK,
        data=body,
        headers={"Stripe-Signature": sign_webhook(body, **sign_kwargs)},
        content_type="application/json",
    )


# ── Signature verification ───────────────────────────────────────────────


def test_verify_signature_accepts_valid_header():
    body = b'{"id": "evt"}'
    ts = 1_700_000_000
    header = f"t={ts},v1={sign_payload('s3cret', ts, body)}"
    verify_signature(body, header, "s3cret", now=ts + 10)


def test_verify_signature_accepts_any_matching_v1():
    body = b"{}"
    ts = 1_700_000_000
    header = f"t={ts},v1=deadbeef,v1={sign_payload('s3cret', ts, body)}"
    verify_signature(body, header, "s3cret", now=ts)


@pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=00", "v1=00"])
def test_verify_signature_rejects_bad_headers(header):
    with pytest.raises(SignatureVerificationError):
        verify_signature(b"{}", header, "s3cret", now=1_700_000_000)


def test_verify_signature_rejects_stale_timestamp():
    body = b"{}"
    ts = 1_700_000_000
    header = f"t={ts},v1={sign_payload('s3cret', ts, body)}"
    with pytest.raises(SignatureVerificationError):
        verify_signature(body, header, "s3cret", tolerance=300, now=ts + 301)


def test_verify_signature_without_secret():
    with pytest.raises(ConfigurationError):
        verify_signature(b"{}", "t=1,v1=00", None)


# ── Webhook endpoint ─────────────────────────────────────────────────────


def test_paid_event_moves_project_to_sign_off(client, project, sign_webhook):
    res = _post(client, sign_webhook, _event(project["id"]))

    assert res.status_code == 200
    assert res.get_json() == {"received": True, "handled": True, "project_id": project["id"]}

    refreshed = db.session.get(Project, project["id"])
    assert refreshed.current_phase_key == "SIGN"
    assert refreshed.progress_percentage == 88
    assert "PAY_completed_at" in refreshed.phase_metadata

    records = ActivityLog.query.filter_by(project_id=project["id"], action="payment_completed").all()
    assert len(records) == 1
    assert records[0].details["amount"] == 250000

    pay = ProjectPhase.query.filter_by(project_id=project["id"], phase_key="PAY").one()
    sign = ProjectPhase.query.filter_by(project_id=project["id"], phase_key="SIGN").one()
    assert pay.status == "completed"
    assert sign.status == "in_progress"


@pytest.mark.parametrize("event_type", ["payment_intent.succeeded", "checkout.session.completed"])
def test_other_paid_event_types(client, project, sign_webhook, event_type):
    res = _post(client, sign_webhook, _event(project["id"], event_type=event_type, key="project_id"))
    assert res.get_json()["handled"] is True


def test_duplicate_event_is_acknowledged_without_writes(client, project, sign_webhook):
    event = _event(project["id"])
    _post(client, sign_webhook, event)
    first_stamp = db.session.get(Project, project["id"]).phase_metadata["PAY_completed_at"]

    res = _post(client, sign_webhook, event)

    assert res.status_code == 200
    assert res.get_json()["reason"] == "duplicate"
    assert ActivityLog.query.filter_by(action="payment_completed").count() == 1
    assert PaymentEvent.query.count() == 1
    assert db.session.get(Project, project["id"]).phase_metadata["PAY_completed_at"] == first_stamp


def test_ignored_event_type(client, project, sign_webhook):
    res = _post(client, sign_webhook, _event(project["id"], event_type="customer.created"))
    assert res.status_code == 200
    assert res.get_json() == {"received": True, "handled": False, "reason": "ignored_event_type"}
    assert PaymentEvent.query.count() == 0


def test_unknown_project_is_recorded(client, sign_webhook):
    res = _post(client, sign_webhook, _event("does-not-exist"))
    assert res.status_code == 200
    assert res.get_json()["reason"] == "unknown_project"
    stored = PaymentEvent.query.one()
    assert stored.project_id is None


def test_unsigned_request_is_400(client, project):
    res = client.post(WEBHOOK, data=json.dumps(_event(project["id"])), content_type="application/json")
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_SIGNATURE"
    assert ActivityLog.query.filter_by(action="payment_completed").count() == 0


def test_wrong_secret_is_400(client, project, sign_webhook):
    res = _post(client, sign_webhook, _event(project["id"]), secret="whsec_other")
    assert res.status_code == 400


def test_stale_signature_is_400(client, project, sign_webhook):
    res = _post(client, sign_webhook, _event(project["id"]), timestamp=int(time.time()) - 3600)
    assert res.status_code == 400


def test_missing_secret_is_503(app, client, project, sign_webhook, monkeypatch):
    monkeypatch.setitem(app.config, "PAYMENT_WEBHOOK_SECRET", None)
    res = _post(client, sign_webhook, _event(project["id"]))
    assert res.status_code == 503
    assert res.get_json()["code"] == "ERR_CONFIG"


def test_invalid_json_is_422(client, sign_webhook):
    body = b"not json"
    res = client.post(WEBHOOK, data=body, headers={"Stripe-Signature": sign_webhook(body)})
    assert res.status_code == 422


def test_payment_notifies_client(client, project, client_user, sign_webhook):
    from app.models.scheduling import EmailLog

    _post(client, sign_webhook, _event(project["id"]))
    emails = EmailLog.query.filter_by(template_name="payment_received").all()
    assert [e.recipient_email for e in emails] == [client_user.email]
