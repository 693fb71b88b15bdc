"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-09-28 09:30:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Sessions carry the encrypted directory credential used for unattended runs.
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("auth_mode", sa.String(), nullable=False, server_default="app-only"),
        sa.Column("credentials", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_sessions_session_id", "sessions", ["session_id"], unique=True)
    op.create_index("ix_sessions_tenant_id", "sessions", ["tenant_id"], unique=False)
    op.create_index(
        "ix_sessions_tenant_updated_at",
        "sessions",
        ["tenant_id", sa.text("updated_at DESC")],
        unique=False,
    )

    op.create_table(
        "scheduled_lifecycle_changes",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("user_object_id", sa.String(), nullable=True),
        sa.Column("user_principal_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("department", sa.String(), nullable=True),
        sa.Column("job_title", sa.String(), nullable=True),
        sa.Column("manager_email", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False, server_default="UTC"),
        sa.Column("status", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("actions_json", postgresql.JSONB(), nullable=False),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("executed_by", sa.String(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('scheduled', 'in-progress', 'completed', 'failed')",
            name="ck_scheduled_lifecycle_changes_status",
        ),
    )
    op.create_index("ix_scheduled_lifecycle_changes_tenant_id", "scheduled_lifecycle_changes", ["tenant_id"])
    op.create_index(
        "ix_scheduled_lifecycle_changes_user_object_id", "scheduled_lifecycle_changes", ["user_object_id"]
    )
    op.create_index(
        "ix_scheduled_lifecycle_changes_status_scheduled_for",
        "scheduled_lifecycle_changes",
        ["status", "scheduled_for"],
    )
    op.create_index(
        "ix_scheduled_lifecycle_changes_tenant_status",
        "scheduled_lifecycle_changes",
        ["tenant_id", "status"],
    )

    op.create_table(
        "lifecycle_execution_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("change_id", sa.String(), sa.ForeignKey("scheduled_lifecycle_changes.id"), nullable=True),
        sa.Column("target_user_id", sa.String(), nullable=True),
        sa.Column("target_user_name", sa.String(), nullable=True),
        sa.Column("target_user_email", sa.String(), nullable=True),
        sa.Column("executed_by", sa.String(), nullable=False),
        sa.Column("execution_type", sa.String(), nullable=False, server_default="scheduled"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("total_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_actions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("actions_json", postgresql.JSONB(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_lifecycle_execution_logs_tenant_id", "lifecycle_execution_logs", ["tenant_id"])
    op.create_index("ix_lifecycle_execution_logs_change_id", "lifecycle_execution_logs", ["change_id"])
    op.create_index("ix_lifecycle_execution_logs_target_user_id", "lifecycle_execution_logs", ["target_user_id"])
    op.create_index("ix_lifecycle_execution_logs_status", "lifecycle_execution_logs", ["status"])
    op.create_index(
        "ix_lifecycle_execution_logs_tenant_started_at",
        "lifecycle_execution_logs",
        ["tenant_id", "started_at"],
    )

    # Persist structured audit events for compliance review.
    op.create_table(
        "audit_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=True),
        sa.Column("session_id", sa.String(), nullable=True),
        sa.Column("actor_type", sa.String(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("outcome", sa.String(), nullable=False),
        sa.Column("resource_type", sa.String(), nullable=True),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
        sa.Column("error_code", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_tenant_id", "audit_events", ["tenant_id"])
    op.create_index(
        "ix_audit_events_tenant_occurred_at",
        "audit_events",
        ["tenant_id", sa.text("occurred_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("ix_audit_events_tenant_occurred_at", table_name="audit_events")
    op.drop_index("ix_audit_events_tenant_id", table_name="audit_events")
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_index("ix_audit_events_occurred_at", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("lifecycle_execution_logs")
    op.drop_table("scheduled_lifecycle_changes")
    op.drop_index("ix_sessions_tenant_updated_at", table_name="sessions")
    op.drop_index("ix_sessions_tenant_id", table_name="sessions")
    op.drop_index("ix_sessions_session_id", table_name="sessions")
    op.drop_table("sessions")
