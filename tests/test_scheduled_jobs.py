"""
Tests — polling jobs and the scheduler registry.
"""

from app.models import db
from app.models.scheduling import EmailLog, ScheduledJob
from app.services import phase_service, project_service
from app.services.email_service import EmailService
from app.services.scheduled_jobs import send_weekly_project_summary
from app.services.scheduler_service import SchedulerService, get_registered_jobs


def test_jobs_are_registered():
    assert {"email_queue_drain", "weekly_project_summary"} <= set(get_registered_jobs())


def test_ensure_jobs_registered_creates_rows():
    SchedulerService.ensure_jobs_registered()
    weekly = ScheduledJob.query.filter_by(job_name="weekly_project_summary").one()
    assert weekly.schedule_config["day_of_week"] == "mon"
    assert weekly.schedule_config["hour"] == "9"
    drain = ScheduledJob.query.filter_by(job_name="email_queue_drain").one()
    assert drain.schedule_type == "interval"

    SchedulerService.ensure_jobs_registered()
    assert ScheduledJob.query.count() == 2


def test_run_email_queue_drain_records_run():
    SchedulerService.ensure_jobs_registered()
    EmailService.queue(to_email="a@example.com", subject="S", html_body="<p>b</p>")
    db.session.commit()

    outcome = SchedulerService.run_job("email_queue_drain")

    assert outcome["status"] == "success"
    assert outcome["result"] == {"sent": 1, "retried": 0, "failed": 0}
    record = ScheduledJob.query.filter_by(job_name="email_queue_drain").one()
    assert record.run_count == 1
    assert record.last_run_status == "success"


def test_run_unknown_job():
    assert SchedulerService.run_job("nope")["status"] == "error"


def test_paused_job_is_skipped():
    SchedulerService.ensure_jobs_registered()
    SchedulerService.toggle_job("email_queue_drain", False)
    assert SchedulerService.run_job("email_queue_drain")["status"] == "skipped"


def test_weekly_summary_one_email_per_active_project(app, project, make_project, client_user):
    phase_service.advance(project["id"], "ONB", "awaiting_approval")
    archived = make_project(name="Old job")
    project_service.archive_project(archived["id"])
    EmailLog.query.delete()
    db.session.commit()

    result = send_weekly_project_summary(app)

    assert result == {"projects": 1, "emails_queued": 1, "skipped_no_client": 0}
    email = EmailLog.query.one()
    assert email.recipient_email == client_user.email
    assert email.template_name == "weekly_project_summary"
    assert email.category == "digest"
    assert "Onboarding" in email.html_body
    assert "Awaiting approval" in email.html_body
    assert "<strong>2</strong> updates" in email.html_body
