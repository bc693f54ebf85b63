"""
Payment bridge — applies payment-provider webhook events to projects.

Signature scheme (Stripe-compatible):

    Stripe-Signature: t=<unix seconds>,v1=<hex hmac>[,v1=<hex hmac>...]

    v1 = HMAC-SHA256(webhook_secret, "<t>.<raw body>")

Events of type invoice.paid, payment_intent.succeeded and
checkout.session.completed move the project past the Payment phase:
``current_phase_key = SIGN``, ``progress_percentage = 88``, a
``PAY_completed_at`` stamp and one ``payment_completed`` activity record.
Every applied event id is stored in PaymentEvent; a redelivery is
acknowledged without writes.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConfigurationError, SignatureVerificationError, ValidationError
from app.models import db
from app.models.activity import PaymentEvent
from app.models.project import Project, ProjectPhase
from app.services.activity_service import record_activity
from app.services.notification import NotificationService
from app.services.phase_catalog import get_catalog
from app.services.phase_service import complete_phase, stamp_completion
from app.utils.crypto import sign_payload, signatures_match

logger = logging.getLogger(__name__)

PAYMENT_EVENT_TYPES = frozenset({
    "invoice.paid",
    "payment_intent.succeeded",
    "checkout.session.completed",
})

PAYMENT_PHASE_KEY = "PAY"
NEXT_PHASE_KEY = "SIGN"
PAID_PROGRESS = 88

DEFAULT_TOLERANCE = 300


# ── Signature verification ─────────────────────────────────────────────────────


def _parse_signature_header(header: str) -> tuple[str | None, list[str]]:
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str | None,
    tolerance: int = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> None:
    """Verify a ``Stripe-Signature`` header against the raw request body.

    Raises:
        ConfigurationError:          no webhook secret configured.
        SignatureVerificationError:  header missing, malformed, stale or wrong.
    """
    if not secret:
        raise ConfigurationError("PAYMENT_WEBHOOK_SECRET is not configured")
    if not header:
        raise SignatureVerificationError("Missing Stripe-Signature header")

    timestamp, signatures = _parse_signature_header(header)
    if timestamp is None or not signatures:
        raise SignatureVerificationError("Malformed Stripe-Signature header")
    try:
        signed_at = int(timestamp)
    except ValueError:
        raise SignatureVerificationError("Malformed signature timestamp") from None

    now = time.time() if now is None else now
    if tolerance and abs(now - signed_at) > tolerance:
        raise SignatureVerificationError("Signature timestamp outside tolerance")

    expected = sign_payload(secret, timestamp, payload)
    if not any(signatures_match(expected, candidate) for candidate in signatures):
        raise SignatureVerificationError("No signature matches the payload")


def construct_event(payload: bytes, header: str | None) -> dict:
    """Verify the signature with app config and decode the event JSON."""
    cfg = current_app.config
    verify_signature(
        payload,
        header,
        cfg.get("PAYMENT_WEBHOOK_SECRET"),
        tolerance=cfg.get("PAYMENT_WEBHOOK_TOLERANCE", DEFAULT_TOLERANCE),
    )
    try:
        event = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Webhook payload is not valid JSON") from None
    if not isinstance(event, dict):
        raise ValidationError("Webhook payload must be a JSON object")
    return event


# ── Event handling ─────────────────────────────────────────────────────────────


def _project_id_from(event: dict) -> str | None:
    obj = (event.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") or {}
    project_id = metadata.get("projectId") or metadata.get("project_id")
    return str(project_id) if project_id else None


def _amount_from(event: dict) -> tuple[int | None, str | None]:
    obj = (event.get("data") or {}).get("object") or {}
    for field in ("amount_paid", "amount_received", "amount_total"):
        if obj.get(field) is not None:
            return obj[field], obj.get("currency")
    return None, obj.get("currency")


def handle_event(event: dict) -> dict:
    """Apply a verified provider event.

    Returns:
        ``{"received": True, "handled": bool, ...}``; never raises for
        events that are merely irrelevant, duplicated or unmatched, so the
        provider stops redelivering them.

    Raises:
        ValidationError: event has no id or type.
    """
    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        raise ValidationError("Webhook event requires id and type")

    log_extra = {"event_id": event_id, "event_type": event_type}

    if event_type not in PAYMENT_EVENT_TYPES:
        logger.info("Ignoring payment event type %s", event_type, extra=log_extra)
        return {"received": True, "handled": False, "reason": "ignored_event_type"}

    if PaymentEvent.query.filter_by(event_id=event_id).first() is not None:
        logger.info("Duplicate payment event %s", event_id, extra=log_extra)
        return {"received": True, "handled": False, "reason": "duplicate"}

    project_id = _project_id_from(event)
    project = db.session.get(Project, project_id) if project_id else None
    if project is None:
        logger.warning("Payment event without a known project (project_id=%s)", project_id,
                       extra=log_extra)
        db.session.add(PaymentEvent(event_id=event_id, event_type=event_type, project_id=None))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
        return {"received": True, "handled": False, "reason": "unknown_project"}

    now = datetime.now(timezone.utc)
    amount, currency = _amount_from(event)

    db.session.add(PaymentEvent(event_id=event_id, event_type=event_type, project_id=project.id))

    project.current_phase_key = NEXT_PHASE_KEY
    project.progress_percentage = PAID_PROGRESS
    stamp_completion(project, PAYMENT_PHASE_KEY, now)

    rows = {
        p.phase_key: p
        for p in ProjectPhase.query.filter(
            ProjectPhase.project_id == project.id,
            ProjectPhase.phase_key.in_([PAYMENT_PHASE_KEY, NEXT_PHASE_KEY]),
        ).all()
    }
    if PAYMENT_PHASE_KEY in rows:
        complete_phase(project, rows[PAYMENT_PHASE_KEY], now)
    if NEXT_PHASE_KEY in rows and rows[NEXT_PHASE_KEY].status == "not_started":
        rows[NEXT_PHASE_KEY].status = "in_progress"
        rows[NEXT_PHASE_KEY].started_at = rows[NEXT_PHASE_KEY].started_at or now

    record_activity(
        project.id, "payment_completed",
        phase_key=PAYMENT_PHASE_KEY,
        description="Payment received",
        details={
            "event_id": event_id,
            "event_type": event_type,
            "amount": amount,
            "currency": currency,
        },
    )

    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent delivery of the same event id won the insert
        db.session.rollback()
        logger.info("Duplicate payment event %s (concurrent)", event_id, extra=log_extra)
        return {"received": True, "handled": False, "reason": "duplicate"}

    logger.info("Payment applied", extra={**log_extra, "project_id": project.id})

    NotificationService.dispatch(
        "payment_received", project,
        next_phase_label=get_catalog().label(NEXT_PHASE_KEY),
    )
    return {"received": True, "handled": True, "project_id": project.id}
