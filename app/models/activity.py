"""
Studio Client Portal
Activity & payment-event models.

Models:
    - ActivityLog: append-only project timeline (phase transitions, approvals,
      payments, generated documents).
    - PaymentEvent: provider event ids already applied, the idempotency key
      of the payment webhook.
"""

from datetime import datetime, timezone

from app.models import db

# ── Constants ─────────────────────────────────────────────────────────────────

ACTIVITY_ACTIONS = {
    "project_created",
    "project_archived",
    "phase_status_changed",
    "phase_order_override",
    "phase_approved",
    "phase_changes_requested",
    "payment_completed",
    "document_generated",
}


class ActivityLog(db.Model):
    """
    Immutable activity record.

    Rows are only ever inserted; no code path updates or deletes them.
    ``user_id`` is NULL for system actors (payment webhook, jobs).
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_project_created", "project_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    phase_key = db.Column(db.String(20), nullable=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = db.Column(
        db.String(60), nullable=False,
        comment="phase_status_changed | phase_approved | payment_completed | …",
    )
    description = db.Column(db.Text, default="")
    details = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase_key": self.phase_key,
            "user_id": self.user_id,
            "action": self.action,
            "description": self.description,
            "details": dict(self.details or {}),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action} on {self.project_id}/{self.phase_key}>"


class PaymentEvent(db.Model):
    """Provider webhook event that has been applied to a project."""

    __tablename__ = "payment_events"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    event_type = db.Column(db.String(100), nullable=False)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    received_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "event_type": self.event_type,
            "project_id": self.project_id,
            "received_at": self.received_at.isoformat() if self.received_at else None,
        }

    def __repr__(self):
        return f"<PaymentEvent {self.event_id} ({self.event_type})>"
