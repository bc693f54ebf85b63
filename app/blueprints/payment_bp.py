"""
Payment webhook blueprint.

Endpoint:
    POST  /api/v1/payments/webhook
          Raw provider body, signed via the Stripe-Signature header.

Returns 200 ``{"received": true, ...}`` for every verified event, including
ignored and duplicate ones; 400 for a missing or bad signature; 503 when no
webhook secret is configured.
"""

import logging

from flask import Blueprint, jsonify, request

from app.core.exceptions import SignatureVerificationError
from app.services import payment_service
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payment", __name__, url_prefix="/api/v1/payments")

SIGNATURE_HEADER = "Stripe-Signature"


@payment_bp.route("/webhook", methods=["POST"])
def payment_webhook():
    payload = request.get_data(cache=False)
    try:
        event = payment_service.construct_event(payload, request.headers.get(SIGNATURE_HEADER))
    except SignatureVerificationError as exc:
        logger.warning("Payment webhook signature rejected: %s", exc,
                       extra={"remote_addr": request.remote_addr})
        return api_error(E.SIGNATURE, str(exc))

    result = payment_service.handle_event(event)
    return jsonify(result), 200
