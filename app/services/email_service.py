"""
Studio Client Portal
Email Service.

Queues templated emails in EmailLog and drains the queue over SMTP.
When SMTP is not configured, queued emails are logged but not sent (dev/test mode).

Delivery model:
    - ``queue`` / ``queue_from_template`` insert a ``queued`` EmailLog row
    - ``process_queue`` (the ``email_queue_drain`` job) sends every due row
    - A failed send increments ``attempts`` and schedules the next try
      ``2 ** attempts`` seconds later; at ``max_attempts`` the row is ``failed``

Configuration (env vars):
    MAIL_SERVER     SMTP host (default: None → log-only mode)
    MAIL_PORT       SMTP port (default: 587)
    MAIL_USE_TLS    Use TLS (default: true)
    MAIL_USERNAME   SMTP username
    MAIL_PASSWORD   SMTP password
    MAIL_DEFAULT_SENDER  Default from address
    EMAIL_MAX_ATTEMPTS   Send attempts before a row is marked failed (default: 3)
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timedelta, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from flask import current_app
from markupsafe import escape

from app.models import db
from app.models.scheduling import EmailLog

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_LAYOUT = """
<div style="font-family: 'Inter', Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <div style="background: {accent}; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
        <h2 style="margin: 0; font-size: 18px;">{heading}</h2>
        <p style="margin: 4px 0 0; color: #e2e8f0; font-size: 13px;">{project_name}</p>
    </div>
    <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0; border-top: none;">
        {content}
        <p style="margin-top: 24px;">
            <a href="{project_url}" style="background: #1e293b; color: white; padding: 8px 16px;
               border-radius: 4px; text-decoration: none;">Open project</a>
        </p>
    </div>
    <div style="background: #f1f5f9; padding: 12px 24px; border-radius: 0 0 8px 8px;
                border: 1px solid #e2e8f0; border-top: none; text-align: center;">
        <p style="color: #94a3b8; font-size: 12px; margin: 0;">
            Studio Client Portal — Automated notification
        </p>
    </div>
</div>
"""

_TEMPLATES: dict[str, dict[str, str]] = {
    "phase_approval_needed": {
        "subject": "[{project_name}] {phase_label} is ready for your approval",
        "heading": "Your approval is needed",
        "accent": "#f59e0b",
        "content": """
        <p style="color: #334155; line-height: 1.6;">
            The <strong>{phase_label}</strong> phase is complete on our side and is
            waiting for your review. Approve it or request changes from the portal.
        </p>
        """,
    },
    "phase_approved": {
        "subject": "[{project_name}] {phase_label} approved",
        "heading": "Phase approved",
        "accent": "#22c55e",
        "content": """
        <p style="color: #334155; line-height: 1.6;">
            <strong>{approver_name}</strong> approved the <strong>{phase_label}</strong> phase.
        </p>
        <p style="color: #64748b;">{notes}</p>
        """,
    },
    "phase_changes_requested": {
        "subject": "[{project_name}] Changes requested on {phase_label}",
        "heading": "Changes requested",
        "accent": "#ef4444",
        "content": """
        <p style="color: #334155; line-height: 1.6;">
            <strong>{requester_name}</strong> requested changes on the
            <strong>{phase_label}</strong> phase:
        </p>
        <blockquote style="border-left: 3px solid #ef4444; margin: 12px 0; padding: 4px 12px;
                           color: #475569;">{feedback}</blockquote>
        """,
    },
    "phase_completed": {
        "subject": "[{project_name}] {phase_label} completed",
        "heading": "Phase completed",
        "accent": "#3b82f6",
        "content": """
        <p style="color: #334155; line-height: 1.6;">
            The <strong>{phase_label}</strong> phase is complete.
            Next up: <strong>{next_phase_label}</strong>.
        </p>
        <p style="color: #64748b;">Overall progress: {progress}%</p>
        """,
    },
    "payment_received": {
        "subject": "[{project_name}] Payment received",
        "heading": "Payment received — thank you",
        "accent": "#22c55e",
        "content": """
        <p style="color: #334155; line-height: 1.6;">
            We received your payment. Your project has moved on to
            <strong>{next_phase_label}</strong>.
        </p>
        """,
    },
    "weekly_project_summary": {
        "subject": "[{project_name}] Weekly summary — {week}",
        "heading": "Weekly project summary",
        "accent": "#1e293b",
        "content": """
        <p style="color: #334155;">Current phase: <strong>{current_phase_label}</strong>
           ({progress}% complete)</p>
        <table style="width: 100%; border-collapse: collapse; margin: 12px 0;">
            <tr style="background: #e2e8f0;">
                <th style="padding: 8px; text-align: left;">Phase</th>
                <th style="padding: 8px; text-align: left;">Status</th>
            </tr>
            {phase_rows}
        </table>
        <p style="color: #64748b;">Activity this week: <strong>{activity_count}</strong> updates</p>
        """,
    },
}

# Context keys that carry pre-rendered HTML and are not escaped.
_RAW_HTML_KEYS = frozenset({"phase_rows"})

EMAIL_TEMPLATE_NAMES = tuple(_TEMPLATES)


class EmailService:
    """
    Templated email queue.

    In development/test mode (no MAIL_SERVER configured), drained emails are
    logged and marked sent without contacting an SMTP server.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        """Get an email template by name."""
        return _TEMPLATES.get(template_name)

    @classmethod
    def render(cls, template_name: str, context: dict[str, Any]) -> tuple[str, str] | None:
        """Return ``(subject, html_body)`` for a template, or None if unknown."""
        template = cls.get_template(template_name)
        if not template:
            return None

        safe = _SafeDict({
            k: (v if k in _RAW_HTML_KEYS else escape("" if v is None else v))
            for k, v in context.items()
        })
        safe.setdefault("project_url", escape(current_app.config.get("PORTAL_BASE_URL", "")))
        subject = template["subject"].format_map(_SafeDict(
            {k: ("" if v is None else v) for k, v in context.items()}
        ))
        content = template["content"].format_map(safe)
        html_body = _LAYOUT.format_map(_SafeDict({
            **safe,
            "heading": template["heading"],
            "accent": template["accent"],
            "content": content,
        }))
        return subject, html_body

    @classmethod
    def queue(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
        category: str = "system",
        project_id: str | None = None,
    ) -> EmailLog:
        """
        Add an email to the outbound queue.

        Uses ``flush`` so the caller's transaction decides whether the
        email is committed together with the change that triggered it.
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
            category=category,
            status="queued",
            attempts=0,
            max_attempts=current_app.config.get("EMAIL_MAX_ATTEMPTS", 3),
            next_attempt_at=datetime.now(timezone.utc),
            project_id=project_id,
        )
        db.session.add(log)
        db.session.flush()
        logger.debug("Email queued: to=%s template=%s", to_email, template_name,
                     extra={"project_id": project_id})
        return log

    @classmethod
    def queue_from_template(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        template_name: str,
        context: dict[str, Any],
        category: str = "system",
        project_id: str | None = None,
    ) -> EmailLog | None:
        """
        Queue an email using a named template.

        Template variables are interpolated from the context dict.
        """
        rendered = cls.render(template_name, context)
        if rendered is None:
            logger.warning("Email template not found: %s", template_name)
            return None
        subject, html_body = rendered
        return cls.queue(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
            category=category,
            project_id=project_id,
        )

    @classmethod
    def process_queue(cls, *, limit: int = 100, now: datetime | None = None) -> dict[str, int]:
        """
        Send every queued email whose ``next_attempt_at`` is due.

        Returns:
            Counts of ``sent``, ``retried`` and ``failed`` rows.
        """
        now = now or datetime.now(timezone.utc)
        due = (
            EmailLog.query
            .filter(EmailLog.status == "queued")
            .filter(db.or_(EmailLog.next_attempt_at.is_(None), EmailLog.next_attempt_at <= now))
            .order_by(EmailLog.created_at.asc(), EmailLog.id.asc())
            .limit(limit)
            .all()
        )

        stats = {"sent": 0, "retried": 0, "failed": 0}
        for log in due:
            outcome = cls._deliver(log, now)
            stats[outcome] += 1
        db.session.commit()

        if due:
            logger.info("Email queue drained: %s", stats)
        return stats

    @classmethod
    def _deliver(cls, log: EmailLog, now: datetime) -> str:
        """Attempt one send of *log*; returns 'sent', 'retried' or 'failed'."""
        if not cls.is_configured():
            # Dev/test mode: log only
            log.status = "sent"
            log.sent_at = now
            log.attempts = (log.attempts or 0) + 1
            logger.info(
                "Email (dev mode): to=%s subject='%s' template=%s",
                log.recipient_email, log.subject, log.template_name,
                extra={"project_id": log.project_id},
            )
            return "sent"

        try:
            cls._send_smtp(to_email=log.recipient_email, to_name=log.recipient_name,
                           subject=log.subject, html_body=log.html_body)
        except (smtplib.SMTPException, OSError) as exc:
            log.attempts = (log.attempts or 0) + 1
            log.error_message = str(exc)[:1000]
            if log.attempts >= (log.max_attempts or 3):
                log.status = "failed"
                log.next_attempt_at = None
                logger.error("Email failed permanently: to=%s attempts=%d error=%s",
                             log.recipient_email, log.attempts, exc,
                             extra={"project_id": log.project_id})
                return "failed"
            log.next_attempt_at = now + timedelta(seconds=2 ** log.attempts)
            logger.warning("Email send failed, will retry: to=%s attempt=%d error=%s",
                           log.recipient_email, log.attempts, exc,
                           extra={"project_id": log.project_id})
            return "retried"

        log.attempts = (log.attempts or 0) + 1
        log.status = "sent"
        log.sent_at = now
        log.error_message = None
        logger.info("Email sent: to=%s subject='%s'", log.recipient_email, log.subject)
        return "sent"

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER", f"noreply@{server}")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = f"{to_name} <{to_email}>" if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
