"""initial_portal_schema

Create the client portal tables: users, projects, project phases,
project messages, activity log, payment events, generated documents,
scheduled jobs and the outbound email queue.

Revision ID: a1c0f3e2b7d4
Revises:
Create Date: 2026-10-05 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c0f3e2b7d4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=150), nullable=True),
            sa.Column("password_hash", sa.String(length=255), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="client"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_email", "users", ["email"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("client_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("service_types", sa.JSON(), nullable=False),
            sa.Column("phase_keys", sa.JSON(), nullable=False),
            sa.Column("current_phase_key", sa.String(length=20), nullable=True),
            sa.Column("progress_percentage", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("phase_metadata", sa.JSON(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["client_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_client_id", "projects", ["client_id"])

    if "project_phases" not in existing_tables:
        op.create_table(
            "project_phases",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("phase_key", sa.String(length=20), nullable=False),
            sa.Column("label", sa.String(length=100), nullable=False),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="not_started"),
            sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("approved_by", sa.Integer(), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["approved_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "phase_key", name="uq_project_phase_key"),
        )
        op.create_index("ix_project_phases_project_id", "project_phases", ["project_id"])
        op.create_index("ix_project_phases_order", "project_phases", ["project_id", "order_index"])

    if "project_messages" not in existing_tables:
        op.create_table(
            "project_messages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("sender_id", sa.Integer(), nullable=True),
            sa.Column("body", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_messages_project_id", "project_messages", ["project_id"])

    if "activity_logs" not in existing_tables:
        op.create_table(
            "activity_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("phase_key", sa.String(length=20), nullable=True),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("details", sa.JSON(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_activity_logs_project_id", "activity_logs", ["project_id"])
        op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
        op.create_index("idx_activity_project_created", "activity_logs", ["project_id", "created_at"])

    if "payment_events" not in existing_tables:
        op.create_table(
            "payment_events",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("event_id", sa.String(length=255), nullable=False),
            sa.Column("event_type", sa.String(length=100), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_payment_events_event_id", "payment_events", ["event_id"], unique=True)
        op.create_index("ix_payment_events_project_id", "payment_events", ["project_id"])

    if "generated_documents" not in existing_tables:
        op.create_table(
            "generated_documents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("doc_type", sa.String(length=50), nullable=False),
            sa.Column("template", sa.String(length=100), nullable=False),
            sa.Column("sha256", sa.String(length=64), nullable=False),
            sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_generated_documents_project_id", "generated_documents", ["project_id"])

    if "scheduled_jobs" not in existing_tables:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("schedule_type", sa.String(length=30), nullable=True),
            sa.Column("schedule_config", sa.JSON(), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )

    if "email_logs" not in existing_tables:
        op.create_table(
            "email_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_email", sa.String(length=255), nullable=False),
            sa.Column("recipient_name", sa.String(length=150), nullable=True),
            sa.Column("subject", sa.String(length=500), nullable=False),
            sa.Column("html_body", sa.Text(), nullable=False),
            sa.Column("template_name", sa.String(length=100), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
            sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="3"),
            sa.Column("next_attempt_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_email_logs_recipient_email", "email_logs", ["recipient_email"])
        op.create_index("ix_email_logs_project_id", "email_logs", ["project_id"])
        op.create_index("idx_email_status_due", "email_logs", ["status", "next_attempt_at"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "email_logs",
        "scheduled_jobs",
        "generated_documents",
        "payment_events",
        "activity_logs",
        "project_messages",
        "project_phases",
        "projects",
        "users",
    ):
        if table in existing_tables:
            op.drop_table(table)
