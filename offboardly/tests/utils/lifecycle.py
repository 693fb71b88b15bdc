from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offboardly.domain.models import AuditEvent, ExecutionLog, ScheduledLifecycleChange
from offboardly.persistence.repos.lifecycle import create_change, get_change
from offboardly.persistence.repos.sessions import create_session
from offboardly.services.crypto.credentials import CredentialCipher, DirectoryCredentials


async def seed_session(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    tenant_id: str,
    credentials: str | None,
    expires_at: datetime,
    session_id: str | None = None,
    updated_at: datetime | None = None,
) -> str:
    # Persist a login session that optionally carries an encrypted credential bundle.
    resolved_id = session_id or f"sess-{uuid4().hex[:8]}"
    async with session_factory() as session:
        await create_session(
            session,
            session_id=resolved_id,
            tenant_id=tenant_id,
            user_id="admin-1",
            credentials=credentials,
            expires_at=expires_at,
            updated_at=updated_at,
        )
        await session.commit()
    return resolved_id


async def seed_change(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    tenant_id: str,
    session_id: str,
    scheduled_for: datetime,
    actions: dict[str, Any],
    **fields: Any,
) -> str:
    fields.setdefault("user_object_id", "user-obj-1")
    fields.setdefault("user_principal_name", "jane@contoso.example")
    fields.setdefault("display_name", "Jane Doe")
    fields.setdefault("created_by", "admin-1")
    async with session_factory() as session:
        change = await create_change(
            session,
            tenant_id=tenant_id,
            session_id=session_id,
            scheduled_for=scheduled_for,
            actions_json=actions,
            **fields,
        )
        await session.commit()
        return change.id


async def load_change(session_factory: async_sessionmaker[AsyncSession], change_id: str) -> ScheduledLifecycleChange:
    async with session_factory() as session:
        change = await get_change(session, change_id)
    assert change is not None
    return change


async def load_logs(session_factory: async_sessionmaker[AsyncSession], change_id: str) -> list[ExecutionLog]:
    async with session_factory() as session:
        result = await session.execute(select(ExecutionLog).where(ExecutionLog.change_id == change_id))
        return list(result.scalars().all())


async def load_audit(session_factory: async_sessionmaker[AsyncSession], change_id: str) -> list[AuditEvent]:
    async with session_factory() as session:
        result = await session.execute(select(AuditEvent).where(AuditEvent.resource_id == change_id))
        return list(result.scalars().all())


def minutes(value: int) -> timedelta:
    return timedelta(minutes=value)


def encrypted_bundle(
    cipher: CredentialCipher,
    *,
    tenant_id: str,
    client_secret: str | None = "s3cret",
    client_id: str = "app-1",
    directory_tenant: str = "dir-tenant-1",
) -> str:
    return cipher.encrypt(
        DirectoryCredentials(client_id=client_id, tenant_id=directory_tenant, client_secret=client_secret),
        tenant_id=tenant_id,
    )
