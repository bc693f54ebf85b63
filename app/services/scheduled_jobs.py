"""
Studio Client Portal
Scheduled Jobs.

Concrete job implementations triggered by the polling scheduler.

Jobs:
    - email_queue_drain: sends due emails from the EmailLog queue
    - weekly_project_summary: one summary email per active project client
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from markupsafe import escape

from app.models import db
from app.models.project import Project
from app.services.activity_service import count_since
from app.services.email_service import EmailService
from app.services.notification import project_url
from app.services.phase_catalog import get_catalog
from app.services.scheduler_service import register_job

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    "not_started": "Not started",
    "in_progress": "In progress",
    "awaiting_approval": "Awaiting approval",
    "completed": "Completed",
}


# ═══════════════════════════════════════════════════════════════════════════
#  Job 1: Email queue drain
# ═══════════════════════════════════════════════════════════════════════════

@register_job("email_queue_drain")
def drain_email_queue(app) -> dict[str, Any]:
    """Send queued emails whose next attempt is due."""
    return EmailService.process_queue(limit=app.config.get("EMAIL_DRAIN_BATCH", 100))


# ═══════════════════════════════════════════════════════════════════════════
#  Job 2: Weekly project summary
# ═══════════════════════════════════════════════════════════════════════════

def _phase_rows(project) -> str:
    rows = []
    for phase in project.phases:
        rows.append(
            '<tr><td style="padding: 8px;">{}</td><td style="padding: 8px;">{}</td></tr>'.format(
                escape(phase.label), escape(_STATUS_LABELS.get(phase.status, phase.status)),
            )
        )
    return "\n".join(rows)


@register_job("weekly_project_summary")
def send_weekly_project_summary(app, now: datetime | None = None) -> dict[str, Any]:
    """Queue a weekly summary email for the client of every active project."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=7)
    catalog = get_catalog()
    results = {"projects": 0, "emails_queued": 0, "skipped_no_client": 0}

    projects = Project.query.filter_by(status="active").order_by(Project.created_at.asc()).all()
    for project in projects:
        results["projects"] += 1
        client = project.client
        if client is None or not client.is_active:
            results["skipped_no_client"] += 1
            continue

        current_label = (
            catalog.label(project.current_phase_key) if project.current_phase_key else "Not started"
        )
        log = EmailService.queue_from_template(
            to_email=client.email,
            to_name=client.full_name,
            template_name="weekly_project_summary",
            context={
                "project_name": project.name,
                "project_url": project_url(project),
                "week": now.strftime("%G-W%V"),
                "current_phase_label": current_label,
                "progress": project.progress_percentage,
                "phase_rows": _phase_rows(project),
                "activity_count": count_since(project.id, since),
            },
            category="digest",
            project_id=project.id,
        )
        if log is not None:
            results["emails_queued"] += 1

    db.session.commit()
    logger.info("Weekly summary: %s", results, extra={"job_name": "weekly_project_summary"})
    return results
