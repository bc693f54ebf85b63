"""JSON error envelope shared by every API route.

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_CONSTRAINT, "Out of order", details={"blocking": ["IDEA"]})

Body shape: ``{"error": <message>, "code": <E.*>, "details"?: {...}}``.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes (``ERR_`` prefix) returned in the ``code`` field."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    SIGNATURE = "ERR_SIGNATURE"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"
    UNSUPPORTED_MEDIA = "ERR_UNSUPPORTED_MEDIA"
    RATE_LIMITED = "ERR_RATE_LIMITED"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"
    CONFIG = "ERR_CONFIG"


STATUS_FOR_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.SIGNATURE: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT_STATE: 409,
    E.PAYLOAD_TOO_LARGE: 413,
    E.UNSUPPORTED_MEDIA: 415,
    E.VALIDATION_CONSTRAINT: 422,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
    E.CONFIG: 503,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for *code*; *status* overrides the default mapping."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_FOR_CODE.get(code, 400)
