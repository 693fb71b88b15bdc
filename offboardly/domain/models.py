from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from offboardly.domain.state import LifecycleStatus


# JSONB on Postgres, plain JSON for SQLite-backed local runs and tests.
JsonType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER primary keys.
AutoIncrementId = BigInteger().with_variant(Integer(), "sqlite")


def _new_id() -> str:
    return uuid4().hex


class Base(DeclarativeBase):
    pass


class DirectorySession(Base):
    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    # External session identifier issued at login; lifecycle records reference this value.
    session_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    user_id: Mapped[str] = mapped_column(String)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    auth_mode: Mapped[str] = mapped_column(String, default="app-only")
    # Encrypted directory credential bundle; never stored in plaintext.
    credentials: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ScheduledLifecycleChange(Base):
    __tablename__ = "scheduled_lifecycle_changes"
    __table_args__ = (
        # Serve the due-record scan directly from an index.
        Index("ix_scheduled_lifecycle_changes_status_scheduled_for", "status", "scheduled_for"),
        Index("ix_scheduled_lifecycle_changes_tenant_status", "tenant_id", "status"),
        CheckConstraint(
            "status IN ('scheduled', 'in-progress', 'completed', 'failed')",
            name="ck_scheduled_lifecycle_changes_status",
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    session_id: Mapped[str] = mapped_column(String)
    # Target identifiers; any one of them may be the only one available.
    user_object_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    user_principal_name: Mapped[str | None] = mapped_column(String, nullable=True)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    job_title: Mapped[str | None] = mapped_column(String, nullable=True)
    manager_email: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # UTC instant derived from the requested local date, time and timezone.
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    timezone: Mapped[str] = mapped_column(String, default="UTC")
    status: Mapped[str] = mapped_column(String, default=LifecycleStatus.SCHEDULED.value)
    actions_json: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    executed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ExecutionLog(Base):
    __tablename__ = "lifecycle_execution_logs"
    __table_args__ = (
        Index("ix_lifecycle_execution_logs_tenant_started_at", "tenant_id", "started_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    session_id: Mapped[str] = mapped_column(String)
    change_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("scheduled_lifecycle_changes.id"), nullable=True, index=True
    )
    target_user_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    target_user_name: Mapped[str | None] = mapped_column(String, nullable=True)
    target_user_email: Mapped[str | None] = mapped_column(String, nullable=True)
    executed_by: Mapped[str] = mapped_column(String)
    execution_type: Mapped[str] = mapped_column(String, default="scheduled")
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String, index=True)
    total_actions: Mapped[int] = mapped_column(Integer, default=0)
    successful_actions: Mapped[int] = mapped_column(Integer, default=0)
    failed_actions: Mapped[int] = mapped_column(Integer, default=0)
    skipped_actions: Mapped[int] = mapped_column(Integer, default=0)
    # Ordered action outcomes; insertion order is significant.
    actions_json: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, default=list)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AuditEvent(Base):
    __tablename__ = "audit_events"

    # Use a monotonic numeric id for efficient pagination and ordering.
    id: Mapped[int] = mapped_column(AutoIncrementId, primary_key=True, autoincrement=True)
    # Store the event timestamp separately from creation to preserve source clocks.
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    tenant_id: Mapped[str | None] = mapped_column(String, index=True, nullable=True)
    session_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # Capture the actor identity; unattended runs use actor_type="system".
    actor_type: Mapped[str] = mapped_column(String)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # Persist a stable event taxonomy for investigation queries.
    event_type: Mapped[str] = mapped_column(String, index=True)
    outcome: Mapped[str] = mapped_column(String)
    resource_type: Mapped[str | None] = mapped_column(String, nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Keep metadata sanitized and JSONB for flexible investigation.
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JsonType, default=dict)
    error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
