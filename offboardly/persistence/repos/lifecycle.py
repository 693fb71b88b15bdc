from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.domain.models import ScheduledLifecycleChange
from offboardly.domain.state import LifecycleStatus, ensure_transition


async def get_change(session: AsyncSession, change_id: str) -> ScheduledLifecycleChange | None:
    result = await session.execute(
        select(ScheduledLifecycleChange).where(ScheduledLifecycleChange.id == change_id)
    )
    return result.scalar_one_or_none()


async def create_change(session: AsyncSession, **fields: Any) -> ScheduledLifecycleChange:
    fields.setdefault("status", LifecycleStatus.SCHEDULED.value)
    row = ScheduledLifecycleChange(**fields)
    session.add(row)
    await session.flush()
    return row


async def list_due_changes(
    session: AsyncSession,
    *,
    now: datetime,
    limit: int,
) -> list[ScheduledLifecycleChange]:
    # Oldest due first, bounded so one scan stays short.
    result = await session.execute(
        select(ScheduledLifecycleChange)
        .where(
            ScheduledLifecycleChange.status == LifecycleStatus.SCHEDULED.value,
            ScheduledLifecycleChange.scheduled_for <= now,
        )
        .order_by(ScheduledLifecycleChange.scheduled_for.asc(), ScheduledLifecycleChange.id.asc())
        .limit(max(1, int(limit)))
    )
    return list(result.scalars().all())


async def list_changes(
    session: AsyncSession,
    *,
    tenant_id: str,
    status: str | None = None,
    limit: int = 100,
) -> list[ScheduledLifecycleChange]:
    stmt = select(ScheduledLifecycleChange).where(ScheduledLifecycleChange.tenant_id == tenant_id)
    if status is not None:
        stmt = stmt.where(ScheduledLifecycleChange.status == status)
    stmt = stmt.order_by(ScheduledLifecycleChange.scheduled_for.asc()).limit(max(1, min(limit, 500)))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def claim_change(
    session: AsyncSession,
    *,
    change_id: str,
    executed_by: str,
    now: datetime,
) -> bool:
    # Single conditional UPDATE: only one caller can move a row out of scheduled.
    result = await session.execute(
        update(ScheduledLifecycleChange)
        .where(
            ScheduledLifecycleChange.id == change_id,
            ScheduledLifecycleChange.status == LifecycleStatus.SCHEDULED.value,
        )
        .values(
            status=LifecycleStatus.IN_PROGRESS.value,
            executed_at=now,
            executed_by=executed_by,
            error=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def finish_change(
    session: AsyncSession,
    *,
    change_id: str,
    status: LifecycleStatus | str,
    now: datetime,
    error: str | None = None,
) -> bool:
    # Terminal transitions are only valid from in-progress.
    target = ensure_transition(LifecycleStatus.IN_PROGRESS, status)
    result = await session.execute(
        update(ScheduledLifecycleChange)
        .where(
            ScheduledLifecycleChange.id == change_id,
            ScheduledLifecycleChange.status == LifecycleStatus.IN_PROGRESS.value,
        )
        .values(status=target.value, error=error, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def list_stale_in_progress(
    session: AsyncSession,
    *,
    claimed_before: datetime,
    limit: int,
) -> list[ScheduledLifecycleChange]:
    result = await session.execute(
        select(ScheduledLifecycleChange)
        .where(
            ScheduledLifecycleChange.status == LifecycleStatus.IN_PROGRESS.value,
            ScheduledLifecycleChange.executed_at < claimed_before,
        )
        .order_by(ScheduledLifecycleChange.executed_at.asc())
        .limit(max(1, int(limit)))
    )
    return list(result.scalars().all())
