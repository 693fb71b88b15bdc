from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.domain.models import DirectorySession


async def get_valid_session_credentials(
    session: AsyncSession,
    *,
    session_id: str,
    now: datetime,
) -> str | None:
    # Only an unexpired session may lend its credential to an execution.
    result = await session.execute(
        select(DirectorySession.credentials).where(
            DirectorySession.session_id == session_id,
            DirectorySession.expires_at > now,
            DirectorySession.credentials.is_not(None),
        )
    )
    return result.scalar_one_or_none()


async def get_latest_tenant_credentials(session: AsyncSession, *, tenant_id: str) -> str | None:
    # Fall back to the most recently updated tenant session that still carries a credential.
    result = await session.execute(
        select(DirectorySession.credentials)
        .where(
            DirectorySession.tenant_id == tenant_id,
            DirectorySession.credentials.is_not(None),
        )
        .order_by(DirectorySession.updated_at.desc(), DirectorySession.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_session(
    session: AsyncSession,
    *,
    session_id: str,
    tenant_id: str,
    user_id: str,
    expires_at: datetime,
    credentials: str | None = None,
    email: str | None = None,
    display_name: str | None = None,
    auth_mode: str = "app-only",
    updated_at: datetime | None = None,
) -> DirectorySession:
    row = DirectorySession(
        session_id=session_id,
        tenant_id=tenant_id,
        user_id=user_id,
        email=email,
        display_name=display_name,
        auth_mode=auth_mode,
        credentials=credentials,
        expires_at=expires_at,
    )
    if updated_at is not None:
        row.updated_at = updated_at
    session.add(row)
    await session.flush()
    return row
