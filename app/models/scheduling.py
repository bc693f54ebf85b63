"""
Studio Client Portal
Polling-job and outbound email models.

Models:
    - ScheduledJob: one row per registered polling job, with last-run stats
    - EmailLog: outbound email queue, doubling as the delivery audit trail
"""

from datetime import datetime, timezone

from app.models import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduledJob(db.Model):
    """
    Bookkeeping for a polling job.

    The callable lives in ``scheduler_service``'s in-process registry; this
    row holds its schedule, the enabled switch and the outcome of the most
    recent run.  ``schedule_config`` is either cron fields
    (``day_of_week``/``hour``/``minute``) or ``{"seconds": n}`` for
    ``schedule_type='interval'``.
    """

    __tablename__ = "scheduled_jobs"

    id = db.Column(db.Integer, primary_key=True)
    job_name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(500), default="")
    schedule_type = db.Column(db.String(30), default="cron", comment="cron | interval")
    schedule_config = db.Column(db.JSON, default=dict)
    is_enabled = db.Column(db.Boolean, default=True)

    last_run_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_run_status = db.Column(db.String(20), nullable=True, comment="success | failed")
    last_run_duration_ms = db.Column(db.Integer, nullable=True)
    last_run_result = db.Column(db.JSON, nullable=True)
    run_count = db.Column(db.Integer, default=0)
    error_count = db.Column(db.Integer, default=0)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def record_run(self, *, status: str, duration_ms: int, result=None, error=None):
        self.last_run_at = _utcnow()
        self.last_run_status = status
        self.last_run_duration_ms = duration_ms
        self.last_run_result = result
        self.run_count = (self.run_count or 0) + 1
        if status == "failed":
            self.error_count = (self.error_count or 0) + 1
            self.last_error = error

    def to_dict(self) -> dict:
        return {
            "job_name": self.job_name,
            "description": self.description,
            "schedule": {"type": self.schedule_type, **(self.schedule_config or {})},
            "enabled": bool(self.is_enabled),
            "last_run": {
                "at": self.last_run_at.isoformat() if self.last_run_at else None,
                "status": self.last_run_status,
                "duration_ms": self.last_run_duration_ms,
                "result": self.last_run_result,
            },
            "run_count": self.run_count or 0,
            "error_count": self.error_count or 0,
            "last_error": self.last_error,
        }

    def __repr__(self) -> str:
        state = "on" if self.is_enabled else "paused"
        return f"<ScheduledJob {self.job_name} {state}>"


class EmailLog(db.Model):
    """
    Outbound email queue.

    Rows start ``queued``; the drain job sends those whose
    ``next_attempt_at`` is due.  A failed attempt pushes ``next_attempt_at``
    back by ``2 ** attempts`` seconds; once ``attempts`` reaches
    ``max_attempts`` the row is ``failed`` for good.
    """

    __tablename__ = "email_logs"
    __table_args__ = (
        db.Index("idx_email_status_due", "status", "next_attempt_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    recipient_name = db.Column(db.String(150), nullable=True)
    subject = db.Column(db.String(500), nullable=False)
    html_body = db.Column(db.Text, nullable=False, default="")
    template_name = db.Column(db.String(100), nullable=True,
                              comment="Email template used")
    category = db.Column(db.String(30), default="system",
                         comment="phase, approval, payment, digest, system")
    status = db.Column(db.String(20), nullable=False, default="queued",
                       comment="queued, sent, failed")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    max_attempts = db.Column(db.Integer, nullable=False, default=3)
    next_attempt_at = db.Column(db.DateTime(timezone=True), nullable=True)
    error_message = db.Column(db.Text, nullable=True)

    project_id = db.Column(db.String(36), db.ForeignKey("projects.id", ondelete="SET NULL"),
                           nullable=True, index=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "subject": self.subject,
            "template_name": self.template_name,
            "category": self.category,
            "status": self.status,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "next_attempt_at": self.next_attempt_at.isoformat() if self.next_attempt_at else None,
            "error_message": self.error_message,
            "project_id": self.project_id,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<EmailLog {self.id}: {self.subject[:40]} → {self.recipient_email}>"
