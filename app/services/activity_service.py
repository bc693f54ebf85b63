"""
Activity log service.

ActivityLog is APPEND-ONLY: this module only inserts and reads.  Writers
use ``flush`` so the operation that produced the record keeps control of
the transaction.
"""

from __future__ import annotations

import logging

from app.models import db
from app.models.activity import ACTIVITY_ACTIONS, ActivityLog
from app.models.project import Project
from app.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def record_activity(
    project_id: str,
    action: str,
    *,
    phase_key: str | None = None,
    user_id: int | None = None,
    description: str = "",
    details: dict | None = None,
) -> ActivityLog:
    """Append one activity record (flushed, not committed)."""
    if action not in ACTIVITY_ACTIONS:
        raise ValueError(f"Unknown activity action: {action}")
    entry = ActivityLog(
        project_id=project_id,
        phase_key=phase_key,
        user_id=user_id,
        action=action,
        description=description,
        details=details or {},
    )
    db.session.add(entry)
    db.session.flush()
    logger.debug(
        "Activity %s", action,
        extra={"project_id": project_id, "phase_key": phase_key, "user_id": user_id},
    )
    return entry


def get_history(project_id: str, *, action: str | None = None, limit: int | None = None) -> list[dict]:
    """Activity records for a project, oldest first.

    Raises:
        NotFoundError: unknown project.
    """
    if db.session.get(Project, project_id) is None:
        raise NotFoundError(resource="Project", resource_id=project_id)

    q = ActivityLog.query.filter_by(project_id=project_id)
    if action:
        q = q.filter_by(action=action)
    q = q.order_by(ActivityLog.created_at.asc(), ActivityLog.id.asc())
    if limit:
        q = q.limit(limit)
    return [entry.to_dict() for entry in q.all()]


def count_since(project_id: str, since) -> int:
    """Number of activity records for a project created at or after *since*."""
    return (
        ActivityLog.query
        .filter(ActivityLog.project_id == project_id, ActivityLog.created_at >= since)
        .count()
    )
