from __future__ import annotations

from datetime import date, datetime, time, timezone
import logging
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.core.errors import InvalidScheduleError
from offboardly.domain.actions import ActionSettings
from offboardly.domain.models import ScheduledLifecycleChange
from offboardly.persistence.repos.lifecycle import create_change
from offboardly.services.audit import ACTOR_USER, record_event


logger = logging.getLogger(__name__)

SCHEDULE_EVENT = "lifecycle.schedule"


def to_utc(local_date: str, local_time: str, timezone_name: str = "UTC") -> datetime:
    # Interpret the wall-clock date/time in the requested IANA zone and return the UTC instant.
    try:
        zone = ZoneInfo(timezone_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidScheduleError(f"Unknown timezone: {timezone_name}") from exc
    try:
        parsed_date = date.fromisoformat(local_date)
        parsed_time = time.fromisoformat(local_time)
    except ValueError as exc:
        raise InvalidScheduleError("Scheduled date must be YYYY-MM-DD and time HH:MM") from exc
    local = datetime.combine(parsed_date, parsed_time.replace(tzinfo=None), tzinfo=zone)
    return local.astimezone(timezone.utc)


def parse_action_settings(actions: ActionSettings | dict[str, Any]) -> ActionSettings:
    if isinstance(actions, ActionSettings):
        return actions
    try:
        return ActionSettings.model_validate(actions)
    except ValidationError as exc:
        raise InvalidScheduleError(f"Invalid action configuration: {exc.error_count()} error(s)") from exc


async def schedule_lifecycle_change(
    session: AsyncSession,
    *,
    tenant_id: str,
    session_id: str,
    created_by: str,
    scheduled_date: str,
    scheduled_time: str,
    actions: ActionSettings | dict[str, Any],
    timezone_name: str = "UTC",
    user_object_id: str | None = None,
    user_principal_name: str | None = None,
    email: str | None = None,
    display_name: str | None = None,
    department: str | None = None,
    job_title: str | None = None,
    manager_email: str | None = None,
    notes: str | None = None,
    commit: bool = False,
) -> ScheduledLifecycleChange:
    if not (user_object_id or user_principal_name or email):
        raise InvalidScheduleError("A target user id, principal name, or email is required")
    settings = parse_action_settings(actions)
    scheduled_for = to_utc(scheduled_date, scheduled_time, timezone_name)
    change = await create_change(
        session,
        tenant_id=tenant_id,
        session_id=session_id,
        user_object_id=user_object_id,
        user_principal_name=user_principal_name,
        email=email,
        display_name=display_name,
        department=department,
        job_title=job_title,
        manager_email=manager_email,
        notes=notes,
        scheduled_for=scheduled_for,
        timezone=timezone_name or "UTC",
        actions_json=settings.to_payload(),
        created_by=created_by,
    )
    await record_event(
        session,
        tenant_id=tenant_id,
        session_id=session_id,
        actor_type=ACTOR_USER,
        actor_id=created_by,
        event_type=SCHEDULE_EVENT,
        outcome="success",
        resource_type="scheduled_lifecycle_change",
        resource_id=change.id,
        details=f"Scheduled offboarding for {display_name or user_principal_name or email or user_object_id}",
        metadata={"scheduled_for": scheduled_for.isoformat(), "timezone": change.timezone},
    )
    if commit:
        await session.commit()
    logger.info("lifecycle_change_scheduled change_id=%s tenant_id=%s", change.id, tenant_id)
    return change
