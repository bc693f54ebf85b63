"""
Logging setup for the portal.

Two output shapes share one root handler:

    json      one object per line, for production log shipping
    readable  colored single-line output for local work

``LOG_FORMAT`` picks the shape explicitly; otherwise production gets JSON.
``LOG_LEVEL`` sets the threshold.  A request-context filter stamps every
record emitted while serving a request with its request id, so webhook and
phase logs can be joined to the access line for the same call.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Structured ``extra=`` keys the portal attaches to records.
CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "user_id",
    "project_id",
    "phase_key",
    "event_type",
    "event_id",
    "template",
    "job_name",
)

_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "urllib3", "playwright")


class RequestContextFilter(logging.Filter):
    """Copy the current request id onto records that lack one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None and has_request_context():
            record.request_id = getattr(g, "request_id", None)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({
            key: getattr(record, key)
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [project/phase]: message (12ms)``"""

    LEVEL_COLORS = {
        "DEBUG": "\033[2m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        color = self.LEVEL_COLORS.get(record.levelname, "")

        scope_parts = [
            str(part) for part in (getattr(record, "project_id", None),
                                   getattr(record, "phase_key", None))
            if part
        ]
        scope = f" [{'/'.join(scope_parts)}]" if scope_parts else ""
        duration = getattr(record, "duration_ms", None)
        timing = f" ({duration:.0f}ms)" if duration is not None else ""

        line = (f"{when} {color}{record.levelname:<7}{self.RESET} "
                f"{record.name}{scope}: {record.getMessage()}{timing}")
        if record.exc_info and record.exc_info[0] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(app):
    """Install the portal's root handler according to app config and env."""
    testing = app.config.get("TESTING", False)
    production = app.config.get("ENV_NAME") == "production"

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    fmt = os.getenv("LOG_FORMAT", "json" if production else "readable").lower()
    formatter = JSONFormatter() if fmt == "json" else ReadableFormatter()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not testing:
        app.logger.info("Logging ready: level=%s format=%s", level_name, fmt)
