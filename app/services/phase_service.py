"""
Phase tracker service.

Owns every write to ProjectPhase rows and to the phase-derived project
fields (``current_phase_key``, ``progress_percentage``, ``phase_metadata``,
project ``status``).  Blueprints call these functions and never commit.

Status machine:

    not_started ──► in_progress ──► awaiting_approval ──► completed
                        ▲                    │
                        └── request_changes ─┘

Business rules enforced here:
    - Leaving ``not_started`` requires every earlier phase to be completed
      (PHASE_ENFORCE_ORDER).  Admins may pass ``override=True``; the bypass
      is recorded as ``phase_order_override``.
    - A phase flagged ``requires_approval`` is completed only through
      ``approve``.
    - Completion is idempotent: ``completed_at`` and the project's
      ``<KEY>_completed_at`` stamp keep their first value.
    - Completing a phase starts the next one and recomputes progress;
      completing the last phase completes the project.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from flask import current_app

from app.core.exceptions import (
    NotFoundError,
    PermissionDenied,
    ProjectArchivedError,
    TransitionError,
    ValidationError,
)
from app.models import db
from app.models.project import (
    ACTIVE_PHASE_STATUSES,
    PHASE_STATUSES,
    PHASE_TRANSITIONS,
    Project,
    ProjectMessage,
    ProjectPhase,
)
from app.services.activity_service import get_history as _activity_history
from app.services.activity_service import record_activity
from app.services.notification import NotificationService, display_name
from app.services.phase_catalog import get_catalog

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_project(project_id: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _check_access(project: Project, actor_id: int | None, actor_role: str) -> None:
    """Clients may only act on their own projects."""
    if actor_role == "admin":
        return
    if actor_id is None or project.client_id != actor_id:
        raise PermissionDenied(f"Not allowed to act on project {project.id}")


def _check_visible(project: Project, actor_id: int | None, actor_role: str) -> None:
    """Another client's project reads as missing, never as forbidden."""
    if actor_role != "admin" and (actor_id is None or project.client_id != actor_id):
        raise NotFoundError(resource="Project", resource_id=project.id)


def _check_mutable(project: Project) -> None:
    if project.status == "archived":
        raise ProjectArchivedError(project.id)


def _load_phases(project_id: str) -> list[ProjectPhase]:
    return (
        ProjectPhase.query
        .filter_by(project_id=project_id)
        .order_by(ProjectPhase.order_index.asc(), ProjectPhase.id.asc())
        .all()
    )


def _find_phase(phases: list[ProjectPhase], project_id: str, phase_key: str) -> ProjectPhase:
    for phase in phases:
        if phase.phase_key == phase_key:
            return phase
    raise NotFoundError(resource="ProjectPhase", resource_id=f"{project_id}/{phase_key}")


def _progress(phases: list[ProjectPhase]) -> int:
    """Completed share of *phases* as a 0-100 integer, halves rounded up."""
    if not phases:
        return 0
    completed = sum(1 for p in phases if p.status == "completed")
    return int(math.floor(100 * completed / len(phases) + 0.5))


def stamp_completion(project: Project, phase_key: str, when: datetime) -> None:
    """Write ``<KEY>_completed_at`` into project metadata unless already present."""
    meta = dict(project.phase_metadata or {})
    stamp_key = f"{phase_key}_completed_at"
    if stamp_key not in meta:
        meta[stamp_key] = when.isoformat()
        project.phase_metadata = meta


def complete_phase(project: Project, phase: ProjectPhase, when: datetime) -> None:
    """Mark *phase* completed, keeping the first completion timestamp."""
    phase.status = "completed"
    if phase.started_at is None:
        phase.started_at = when
    if phase.completed_at is None:
        phase.completed_at = when
    stamp_completion(project, phase.phase_key, when)


def _after_completion(project: Project, phases: list[ProjectPhase], phase: ProjectPhase,
                      when: datetime) -> ProjectPhase | None:
    """Start the next open phase, move the pointer, recompute progress.

    Returns the phase that became current, or None when the project is done.
    """
    following = [p for p in phases if p.order_index > phase.order_index and p.status != "completed"]
    next_phase = following[0] if following else None

    if next_phase is not None:
        if next_phase.status == "not_started":
            next_phase.status = "in_progress"
            if next_phase.started_at is None:
                next_phase.started_at = when
        project.current_phase_key = next_phase.phase_key
    else:
        project.current_phase_key = phase.phase_key

    project.progress_percentage = _progress(phases)

    if all(p.status == "completed" for p in phases):
        project.status = "completed"
        if project.completed_at is None:
            project.completed_at = when
        logger.info("Project completed", extra={"project_id": project.id})
    return next_phase


# ── Provisioning ───────────────────────────────────────────────────────────────


def provision_phases(project: Project, phase_keys: list[str] | None = None) -> list[ProjectPhase]:
    """Create one ProjectPhase row per key; the first starts ``in_progress``.

    Flushes, does not commit.
    """
    catalog = get_catalog()
    keys = phase_keys or list(project.phase_keys or []) or [p.key for p in catalog.default_phases()]
    now = _utcnow()
    rows = []
    for index, key in enumerate(keys):
        definition = catalog.definition(key)
        row = ProjectPhase(
            project_id=project.id,
            phase_key=key,
            label=definition.label,
            order_index=index,
            status="in_progress" if index == 0 else "not_started",
            requires_approval=definition.requires_approval,
            started_at=now if index == 0 else None,
        )
        db.session.add(row)
        rows.append(row)
    project.phase_keys = list(keys)
    project.current_phase_key = keys[0] if keys else None
    project.progress_percentage = 0
    db.session.flush()
    return rows


# ── Queries ────────────────────────────────────────────────────────────────────


def get_phases(project_id: str, *, actor_id: int | None = None, actor_role: str = "admin") -> list[dict]:
    """Ordered phase list for a project.

    Without persisted rows, returns the catalog's default sequence with the
    first phase ``in_progress``.  That fallback is never written.

    Raises:
        NotFoundError: unknown project.
    """
    _check_visible(_get_project(project_id), actor_id, actor_role)
    phases = _load_phases(project_id)
    if phases:
        return [p.to_dict() for p in phases]

    return [
        {
            "id": None,
            "project_id": project_id,
            "key": definition.key,
            "label": definition.label,
            "order_index": index,
            "status": "in_progress" if index == 0 else "not_started",
            "requires_approval": definition.requires_approval,
            "approved_by": None,
            "approved_at": None,
            "started_at": None,
            "completed_at": None,
        }
        for index, definition in enumerate(get_catalog().default_phases())
    ]


def get_history(project_id: str, *, actor_id: int | None = None, actor_role: str = "admin") -> list[dict]:
    """Activity records for the project, oldest first.

    Raises:
        NotFoundError: unknown project, or a client asking about someone else's.
    """
    _check_visible(_get_project(project_id), actor_id, actor_role)
    return _activity_history(project_id)


# ── Transitions ────────────────────────────────────────────────────────────────


def advance(
    project_id: str,
    phase_key: str,
    new_status: str,
    actor_id: int | None = None,
    *,
    actor_role: str = "admin",
    override: bool = False,
) -> dict:
    """Set a phase's status.

    Args:
        project_id:  Project to update.
        phase_key:   Phase to move.
        new_status:  One of PHASE_STATUSES.
        actor_id:    User performing the change (None for system/dev mode).
        actor_role:  "admin" or "client".
        override:    Admin-only bypass of the linear-order guard.

    Returns:
        The updated phase dict.

    Raises:
        NotFoundError:     unknown project or phase.
        ValidationError:   bad status, order guard, approval gate.
        TransitionError:   status change not allowed from the current status.
        ProjectArchivedError: the project is archived (read-only).
        PermissionDenied:  non-admin override, or client acting on another's project.
    """
    if new_status not in PHASE_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'. Must be one of: {', '.join(PHASE_STATUSES)}",
            details={"status": new_status},
        )

    project = _get_project(project_id)
    _check_access(project, actor_id, actor_role)
    _check_mutable(project)
    if override and actor_role != "admin":
        raise PermissionDenied("Only admins may override phase order")

    phases = _load_phases(project_id)
    phase = _find_phase(phases, project_id, phase_key)
    old_status = phase.status
    now = _utcnow()

    # Idempotent completion: a repeat keeps every first timestamp
    if old_status == new_status == "completed":
        stamp_completion(project, phase_key, phase.completed_at or now)
        db.session.commit()
        return phase.to_dict()
    if old_status == new_status:
        return phase.to_dict()

    if new_status not in PHASE_TRANSITIONS.get(old_status, []):
        raise TransitionError(phase_key, f"set {new_status}", old_status)

    if new_status == "completed" and phase.requires_approval:
        raise ValidationError(
            f"Phase {phase_key} requires approval; move it to awaiting_approval and approve it",
            details={"requires_approval": True},
        )

    order_bypassed = False
    if old_status == "not_started" and current_app.config.get("PHASE_ENFORCE_ORDER", True):
        blocking = [
            p.phase_key for p in phases
            if p.order_index < phase.order_index and p.status != "completed"
        ]
        if blocking:
            if not override:
                raise ValidationError(
                    f"Phase {phase_key} cannot start before {', '.join(blocking)} "
                    "are completed",
                    details={"blocking": blocking},
                )
            order_bypassed = True

    phase.status = new_status
    if new_status in ACTIVE_PHASE_STATUSES and phase.started_at is None:
        phase.started_at = now

    if order_bypassed:
        record_activity(
            project_id, "phase_order_override",
            phase_key=phase_key,
            user_id=actor_id,
            description=f"{phase.label} moved out of order",
            details={"skipped": blocking, "to": new_status},
        )

    record_activity(
        project_id, "phase_status_changed",
        phase_key=phase_key,
        user_id=actor_id,
        description=f"{phase.label}: {old_status} → {new_status}",
        details={"from": old_status, "to": new_status, "override": order_bypassed},
    )

    next_phase = None
    if new_status == "completed":
        complete_phase(project, phase, now)
        next_phase = _after_completion(project, phases, phase, now)
    else:
        if new_status in ACTIVE_PHASE_STATUSES:
            project.current_phase_key = phase_key
        project.progress_percentage = _progress(phases)

    db.session.commit()

    logger.info(
        "Phase %s: %s → %s", phase_key, old_status, new_status,
        extra={"project_id": project_id, "phase_key": phase_key, "user_id": actor_id},
    )

    if new_status == "awaiting_approval":
        NotificationService.dispatch(
            "phase_awaiting_approval", project, phase_label=phase.label,
        )
    elif new_status == "completed":
        NotificationService.dispatch(
            "phase_completed", project,
            phase_label=phase.label,
            next_phase_label=next_phase.label if next_phase else "Project complete",
            progress=project.progress_percentage,
        )
    return phase.to_dict()


def approve(
    project_id: str,
    phase_key: str,
    approver_id: int | None = None,
    notes: str | None = None,
    *,
    approver_role: str = "admin",
) -> dict:
    """Approve a phase that is ``awaiting_approval``; it becomes ``completed``.

    Raises:
        NotFoundError, PermissionDenied, TransitionError (not awaiting approval).
    """
    project = _get_project(project_id)
    _check_access(project, approver_id, approver_role)
    _check_mutable(project)

    phases = _load_phases(project_id)
    phase = _find_phase(phases, project_id, phase_key)
    if phase.status != "awaiting_approval":
        raise TransitionError(phase_key, "approve", phase.status, "phase is not awaiting approval")

    now = _utcnow()
    notes = (notes or "").strip() or None
    phase.approved_by = approver_id
    phase.approved_at = now
    complete_phase(project, phase, now)

    record_activity(
        project_id, "phase_approved",
        phase_key=phase_key,
        user_id=approver_id,
        description=f"{phase.label} approved",
        details={"notes": notes} if notes else {},
    )
    next_phase = _after_completion(project, phases, phase, now)
    db.session.commit()

    logger.info(
        "Phase approved", extra={"project_id": project_id, "phase_key": phase_key,
                                 "user_id": approver_id},
    )

    NotificationService.dispatch(
        "phase_approved", project,
        phase_label=phase.label,
        approver_name=display_name(approver_id),
        notes=notes or "",
    )
    NotificationService.dispatch(
        "phase_completed", project,
        phase_label=phase.label,
        next_phase_label=next_phase.label if next_phase else "Project complete",
        progress=project.progress_percentage,
    )
    return phase.to_dict()


def request_changes(
    project_id: str,
    phase_key: str,
    actor_id: int | None = None,
    feedback: str | None = None,
    *,
    actor_role: str = "admin",
) -> dict:
    """Send an ``awaiting_approval`` phase back to ``in_progress`` with feedback.

    The feedback lives in the activity log and the project message thread,
    never on the phase row.

    Raises:
        ValidationError (empty feedback), NotFoundError, PermissionDenied,
        TransitionError (not awaiting approval).
    """
    feedback = (feedback or "").strip()
    if not feedback:
        raise ValidationError("feedback is required", details={"feedback": "required"})

    project = _get_project(project_id)
    _check_access(project, actor_id, actor_role)
    _check_mutable(project)

    phases = _load_phases(project_id)
    phase = _find_phase(phases, project_id, phase_key)
    if phase.status != "awaiting_approval":
        raise TransitionError(phase_key, "request changes", phase.status,
                              "phase is not awaiting approval")

    phase.status = "in_progress"
    project.current_phase_key = phase_key

    record_activity(
        project_id, "phase_changes_requested",
        phase_key=phase_key,
        user_id=actor_id,
        description=f"Changes requested on {phase.label}",
        details={"feedback": feedback},
    )
    db.session.add(ProjectMessage(
        project_id=project_id,
        sender_id=actor_id,
        body=f"Changes requested on {phase.label}:\n\n{feedback}",
    ))
    db.session.commit()

    logger.info(
        "Phase changes requested",
        extra={"project_id": project_id, "phase_key": phase_key, "user_id": actor_id},
    )

    NotificationService.dispatch(
        "phase_changes_requested", project,
        phase_label=phase.label,
        requester_name=display_name(actor_id),
        feedback=feedback,
    )
    return phase.to_dict()
