"""
Per-request id and duration.

Every response carries ``X-Request-ID`` (echoed from the caller when
supplied) and ``X-Request-Duration-Ms``.  One access line is logged per
API call: WARNING when it exceeds ``SLOW_REQUEST_MS``, ERROR on 5xx,
DEBUG otherwise.
"""

import logging
import re
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000

# Probes are polled constantly; keep them out of the access log.
_QUIET_PREFIXES = ("/api/v1/health/",)

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _incoming_request_id() -> str:
    supplied = request.headers.get("X-Request-ID", "")
    if _REQUEST_ID_RE.match(supplied):
        return supplied
    return uuid.uuid4().hex[:16]


def init_request_timing(app: Flask):
    @app.before_request
    def _stamp_request():
        g.request_started = time.perf_counter()
        g.request_id = _incoming_request_id()

    @app.after_request
    def _access_log(response):
        started = getattr(g, "request_started", None)
        if started is None:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed_ms:.1f}"

        if request.path.startswith(_QUIET_PREFIXES):
            return response

        if elapsed_ms > SLOW_REQUEST_MS:
            level = logging.WARNING
        elif response.status_code >= 500:
            level = logging.ERROR
        else:
            level = logging.DEBUG
        logger.log(
            level, "%s %s -> %d", request.method, request.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed_ms,
                "user_id": getattr(g, "current_user_id", None),
                "project_id": (request.view_args or {}).get("project_id"),
            },
        )
        return response
