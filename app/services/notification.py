"""
Studio Client Portal
Notification dispatcher.

Maps phase and payment events to email templates and recipients, and
queues the emails through EmailService.  Dispatch runs after the
triggering operation has committed; a dispatch failure is logged and
rolled back on its own, never propagated to the caller.

    event                     template                  recipients
    ───────────────────────── ───────────────────────── ─────────────
    phase_awaiting_approval   phase_approval_needed     client
    phase_approved            phase_approved            admins
    phase_changes_requested   phase_changes_requested   admins
    phase_completed           phase_completed           client
    payment_received          payment_received          client, admins
"""

import logging

from flask import current_app

from app.models import db
from app.models.auth import User
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

_EVENTS = {
    "phase_awaiting_approval": ("phase_approval_needed", ("client",), "approval"),
    "phase_approved": ("phase_approved", ("admins",), "approval"),
    "phase_changes_requested": ("phase_changes_requested", ("admins",), "approval"),
    "phase_completed": ("phase_completed", ("client",), "phase"),
    "payment_received": ("payment_received", ("client", "admins"), "payment"),
}


def project_url(project) -> str:
    base = (current_app.config.get("PORTAL_BASE_URL") or "").rstrip("/")
    return f"{base}/projects/{project.id}"


def _recipients(project, audiences) -> list[User]:
    users: dict[int, User] = {}
    if "client" in audiences and project.client is not None and project.client.is_active:
        users[project.client.id] = project.client
    if "admins" in audiences:
        for admin in User.query.filter_by(role="admin", is_active=True).all():
            users.setdefault(admin.id, admin)
    return list(users.values())


def display_name(user_id) -> str:
    """Full name (or email) of a user id; 'The studio team' for system actors."""
    if user_id is None:
        return "The studio team"
    user = db.session.get(User, user_id)
    if user is None:
        return "A portal user"
    return user.full_name or user.email


class NotificationService:
    """Stateless dispatcher for project events."""

    @staticmethod
    def dispatch(event: str, project, **context) -> int:
        """
        Queue the emails for *event* on *project*.

        Returns:
            Number of emails queued (0 when the event has no recipients or
            dispatch failed).
        """
        if event not in _EVENTS:
            raise ValueError(f"Unknown notification event: {event}")
        template_name, audiences, category = _EVENTS[event]
        project_id = project.id

        try:
            recipients = _recipients(project, audiences)
            full_context = {
                "project_name": project.name,
                "project_url": project_url(project),
                **context,
            }
            for user in recipients:
                EmailService.queue_from_template(
                    to_email=user.email,
                    to_name=user.full_name,
                    template_name=template_name,
                    context=full_context,
                    category=category,
                    project_id=project_id,
                )
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception(
                "Notification dispatch failed: %s", event,
                extra={"project_id": project_id, "event_type": event},
            )
            return 0

        logger.debug("Notification %s queued for %d recipient(s)", event, len(recipients),
                     extra={"project_id": project_id, "event_type": event})
        return len(recipients)
