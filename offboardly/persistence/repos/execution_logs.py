from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.domain.models import ExecutionLog


async def add_execution_log(session: AsyncSession, log: ExecutionLog) -> ExecutionLog:
    # Logs are append-only; callers own the surrounding transaction.
    session.add(log)
    await session.flush()
    return log


async def list_execution_logs(
    session: AsyncSession,
    *,
    tenant_id: str,
    change_id: str | None = None,
    target_user_id: str | None = None,
    limit: int | None = 50,
) -> list[ExecutionLog]:
    # Scope all history queries to a tenant to prevent cross-tenant leakage.
    stmt = select(ExecutionLog).where(ExecutionLog.tenant_id == tenant_id)
    if change_id:
        stmt = stmt.where(ExecutionLog.change_id == change_id)
    if target_user_id:
        stmt = stmt.where(ExecutionLog.target_user_id == target_user_id)
    stmt = stmt.order_by(ExecutionLog.started_at.desc(), ExecutionLog.created_at.desc())
    if limit:
        stmt = stmt.limit(max(1, min(int(limit), 500)))
    result = await session.execute(stmt)
    return list(result.scalars().all())
