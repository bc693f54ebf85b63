"""
Project intake and lifecycle service.

Projects are created with their phase set resolved from service types and
provisioned as ProjectPhase rows in the same transaction.  Projects are
never deleted; ``archive_project`` is the terminal operation.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from app.models import db
from app.models.auth import User
from app.models.project import PROJECT_STATUSES, Project
from app.services.activity_service import record_activity
from app.services.phase_catalog import get_catalog
from app.services.phase_service import provision_phases

logger = logging.getLogger(__name__)


def create_project(
    name: str,
    client_id: int,
    service_types: list[str] | None = None,
    *,
    description: str = "",
    actor_id: int | None = None,
    project_id: str | None = None,
) -> dict:
    """Create a project, resolve its phase set and provision phase rows.

    Raises:
        ValidationError: blank name, unknown client or service type.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})

    client = db.session.get(User, client_id)
    if client is None or not client.is_active:
        raise ValidationError(f"Unknown client id {client_id}", details={"client_id": client_id})

    codes = [c.strip().upper() for c in (service_types or []) if c and c.strip()]
    phase_keys = get_catalog().resolve_phase_keys(codes)

    project = Project(
        name=name,
        description=description or "",
        client_id=client.id,
        service_types=codes,
        phase_keys=phase_keys,
        phase_metadata={},
        status="active",
    )
    if project_id:
        project.id = project_id
    db.session.add(project)
    db.session.flush()

    provision_phases(project, phase_keys)
    record_activity(
        project.id, "project_created",
        user_id=actor_id,
        description=f"Project {name} created",
        details={"service_types": codes, "phase_keys": phase_keys},
    )
    db.session.commit()

    logger.info("Project created", extra={"project_id": project.id, "user_id": actor_id})
    return project.to_dict(include_phases=True)


def get_project(project_id: str, *, actor_id: int | None = None, actor_role: str = "admin") -> dict:
    """Project detail with phases.

    A client asking for someone else's project gets NotFoundError, so the
    response never reveals that the project exists.
    """
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if actor_role != "admin" and project.client_id != actor_id:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project.to_dict(include_phases=True)


def list_projects(*, client_id: int | None = None, status: str | None = None) -> list[dict]:
    if status and status not in PROJECT_STATUSES:
        raise ValidationError(f"Unknown project status '{status}'", details={"status": status})
    q = Project.query
    if client_id is not None:
        q = q.filter_by(client_id=client_id)
    if status:
        q = q.filter_by(status=status)
    return [p.to_dict() for p in q.order_by(Project.created_at.desc()).all()]


def archive_project(project_id: str, *, actor_id: int | None = None, actor_role: str = "admin") -> dict:
    """Archive a project. Archiving twice is a no-op.

    Raises:
        NotFoundError, PermissionDenied (non-admin).
    """
    if actor_role != "admin":
        raise PermissionDenied("Only admins may archive projects")
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if project.status == "archived":
        return project.to_dict()

    previous = project.status
    project.status = "archived"
    project.archived_at = datetime.now(timezone.utc)
    record_activity(
        project.id, "project_archived",
        user_id=actor_id,
        description=f"Project {project.name} archived",
        details={"previous_status": previous},
    )
    db.session.commit()

    logger.info("Project archived", extra={"project_id": project.id, "user_id": actor_id})
    return project.to_dict()
