"""
Studio Client Portal
Scheduler Service.

Lightweight polling-job runner.  Job functions register themselves with
``@register_job``; a cron container (or an operator) triggers them through
``flask run-job <name>``, and every run is recorded on a ScheduledJob row.

Architecture:
    - _job_registry: in-process name → function map
    - ScheduledJob: persisted schedule + last-run bookkeeping
    - SchedulerService.run_job: executes one job inside an app context
"""

from __future__ import annotations

import logging
import time
from contextlib import nullcontext
from typing import Callable

from flask import Flask, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("email_queue_drain")
        def drain_email_queue(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Polling job runner.

    Jobs execute within the Flask app context; when the caller already
    holds one (CLI commands, tests) it is reused.
    """

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def _context(cls):
        if has_app_context():
            return nullcontext()
        return cls._app.app_context()

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Create a ScheduledJob row for every registered job that lacks one."""
        if not cls._app:
            return []

        created = []
        with cls._context():
            for name, fn in _job_registry.items():
                if ScheduledJob.query.filter_by(job_name=name).first():
                    continue
                schedule = _get_default_schedule(name)
                job = ScheduledJob(
                    job_name=name,
                    description=(fn.__doc__ or f"Scheduled job: {name}").strip().splitlines()[0],
                    schedule_type=schedule.pop("type", "cron"),
                    schedule_config=schedule,
                    is_enabled=True,
                )
                db.session.add(job)
                created.append(job)
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with job_name, status, duration_ms, result and error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        with cls._context():
            job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
            if job_record is not None and not job_record.is_enabled:
                logger.info("Job %s is paused; skipping", job_name, extra={"job_name": job_name})
                return {"job_name": job_name, "status": "skipped", "error": None}

            try:
                result = fn(cls._app)
            except Exception as exc:
                db.session.rollback()
                status = "failed"
                error = str(exc)
                logger.exception("Job %s failed: %s", job_name, exc, extra={"job_name": job_name})

            duration_ms = int((time.monotonic() - start) * 1000)

            try:
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception("Failed to update job record for %s", job_name,
                                 extra={"job_name": job_name})

        logger.info("Job %s finished: %s (%dms)", job_name, status, duration_ms,
                    extra={"job_name": job_name})
        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a scheduled job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        db.session.commit()
        return job_record.to_dict()


def _get_default_schedule(job_name: str) -> dict:
    """Return default schedule config for known job types."""
    defaults = {
        "email_queue_drain": {"type": "interval", "seconds": 60,
                              "description": "Every minute"},
        "weekly_project_summary": {"day_of_week": "mon", "hour": "9", "minute": "0",
                                   "description": "Mondays at 09:00"},
    }
    return dict(defaults.get(job_name, {"hour": "0", "minute": "0",
                                        "description": "Daily at midnight"}))
