"""
Studio Client Portal
Project domain model.

Models:
    - Project: one client engagement, tracked through an ordered phase list.
    - ProjectPhase: per-project phase row with status and approval audit fields.
    - ProjectMessage: project message thread entry (change requests land here).

Phase status machine (wire values):

    not_started ──► in_progress ──► awaiting_approval ──► completed
         ▲               │  ▲               │
         └───────────────┘  └───────────────┘  (changes requested)

``completed`` is terminal; a completed phase only receives audit-field
updates afterwards.
"""

import uuid
from datetime import datetime, timezone

from app.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

PHASE_STATUSES = ("not_started", "in_progress", "awaiting_approval", "completed")

# Statuses that mark a phase as the project's "current" one.
ACTIVE_PHASE_STATUSES = frozenset({"in_progress", "awaiting_approval"})

PHASE_TRANSITIONS = {
    "not_started":       ["in_progress", "awaiting_approval", "completed"],
    "in_progress":       ["not_started", "awaiting_approval", "completed"],
    "awaiting_approval": ["in_progress", "completed"],
    "completed":         [],
}

PROJECT_STATUSES = frozenset({"active", "completed", "archived"})


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(db.Model):
    """
    Client project.

    ``phase_keys`` is the ordered phase set resolved from the project's
    service types at intake.  ``phase_metadata`` carries completion stamps
    keyed ``<PHASE_KEY>_completed_at`` (ISO-8601 strings).

    Projects are never deleted; archiving sets ``status='archived'``.
    """

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    service_types = db.Column(db.JSON, nullable=False, default=list,
                              comment="Service codes, e.g. ['GD', 'WEB']")
    phase_keys = db.Column(db.JSON, nullable=False, default=list,
                           comment="Ordered phase keys for this project")
    current_phase_key = db.Column(db.String(20), nullable=True)
    progress_percentage = db.Column(db.Integer, nullable=False, default=0, comment="0-100")
    phase_metadata = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(
        db.String(20),
        nullable=False,
        default="active",
        comment="active | completed | archived",
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    # ── Relationships ────────────────────────────────────────────────────
    client = db.relationship("User", foreign_keys=[client_id], lazy="joined")
    phases = db.relationship(
        "ProjectPhase",
        backref="project",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="ProjectPhase.order_index",
    )

    def to_dict(self, include_phases: bool = False) -> dict:
        d = {
            "id": self.id,
            "client_id": self.client_id,
            "name": self.name,
            "description": self.description,
            "service_types": list(self.service_types or []),
            "phase_keys": list(self.phase_keys or []),
            "current_phase_key": self.current_phase_key,
            "progress_percentage": self.progress_percentage,
            "phase_metadata": dict(self.phase_metadata or {}),
            "status": self.status,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_phases:
            d["phases"] = [p.to_dict() for p in self.phases]
        return d

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name} @ {self.current_phase_key}>"


class ProjectPhase(db.Model):
    """
    One phase of one project.

    Business rules (enforced in phase_service, not here):
    - Phases flagged ``requires_approval`` reach ``completed`` only through
      ``awaiting_approval`` + approve.
    - ``completed_at`` is written once; repeated completion keeps the first
      timestamp.
    """

    __tablename__ = "project_phases"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase_key = db.Column(db.String(20), nullable=False)
    label = db.Column(db.String(100), nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(
        db.String(30),
        nullable=False,
        default="not_started",
        comment="not_started | in_progress | awaiting_approval | completed",
    )
    requires_approval = db.Column(db.Boolean, nullable=False, default=False)

    approved_by = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "phase_key", name="uq_project_phase_key"),
        db.Index("ix_project_phases_order", "project_id", "order_index"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "key": self.phase_key,
            "label": self.label,
            "order_index": self.order_index,
            "status": self.status,
            "requires_approval": self.requires_approval,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        return f"<ProjectPhase {self.project_id}/{self.phase_key} {self.status}>"


class ProjectMessage(db.Model):
    """Message-thread entry on a project."""

    __tablename__ = "project_messages"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "sender_id": self.sender_id,
            "body": self.body,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
