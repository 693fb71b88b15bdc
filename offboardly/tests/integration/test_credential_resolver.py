from __future__ import annotations

from datetime import timedelta

import pytest

from offboardly.core.errors import CredentialDecryptionError, CredentialsNotFound
from offboardly.services.credentials import CredentialResolver
from offboardly.tests.utils.lifecycle import encrypted_bundle, seed_session


@pytest.mark.asyncio
async def test_session_credential_wins_over_tenant_fallback(session_factory, secret_provider, cipher, now) -> None:
    own = await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=encrypted_bundle(cipher, tenant_id="t1", client_id="app-session"),
        expires_at=now + timedelta(hours=1),
        updated_at=now - timedelta(days=2),
    )
    await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=encrypted_bundle(cipher, tenant_id="t1", client_id="app-newer"),
        expires_at=now + timedelta(hours=1),
        updated_at=now - timedelta(minutes=1),
    )
    resolver = CredentialResolver(secret_provider)
    async with session_factory() as session:
        creds = await resolver.resolve(session, tenant_id="t1", session_id=own, now=now)
    assert creds.client_id == "app-session"
    assert creds.client_secret == "s3cret"


@pytest.mark.asyncio
async def test_expired_session_falls_back_to_latest_tenant_credential(
    session_factory, secret_provider, cipher, now
) -> None:
    expired = await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=encrypted_bundle(cipher, tenant_id="t1", client_id="app-expired"),
        expires_at=now - timedelta(minutes=1),
        updated_at=now - timedelta(days=3),
    )
    await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=encrypted_bundle(cipher, tenant_id="t1", client_id="app-older"),
        expires_at=now - timedelta(days=1),
        updated_at=now - timedelta(days=2),
    )
    await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=encrypted_bundle(cipher, tenant_id="t1", client_id="app-latest"),
        expires_at=now + timedelta(hours=8),
        updated_at=now - timedelta(hours=1),
    )
    resolver = CredentialResolver(secret_provider)
    async with session_factory() as session:
        creds = await resolver.resolve(session, tenant_id="t1", session_id=expired, now=now)
    assert creds.client_id == "app-latest"


@pytest.mark.asyncio
async def test_tenant_credential_used_when_session_has_none(session_factory, secret_provider, cipher, now) -> None:
    bare = await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=None,
        expires_at=now + timedelta(hours=1),
        updated_at=now,
    )
    await seed_session(
        session_factory,
        tenant_id="t1",
        credentials=encrypted_bundle(cipher, tenant_id="t1", client_id="app-tenant"),
        expires_at=now - timedelta(days=30),
        updated_at=now - timedelta(days=1),
    )
    resolver = CredentialResolver(secret_provider)
    async with session_factory() as session:
        creds = await resolver.resolve(session, tenant_id="t1", session_id=bare, now=now)
    assert creds.client_id == "app-tenant"


@pytest.mark.asyncio
async def test_other_tenants_credentials_are_never_used(session_factory, secret_provider, cipher, now) -> None:
    await seed_session(
        session_factory,
        tenant_id="t2",
        credentials=encrypted_bundle(cipher, tenant_id="t2"),
        expires_at=now + timedelta(hours=1),
        updated_at=now,
    )
    resolver = CredentialResolver(secret_provider)
    async with session_factory() as session:
        with pytest.raises(CredentialsNotFound, match="t1"):
            await resolver.resolve(session, tenant_id="t1", session_id="sess-missing", now=now)


@pytest.mark.asyncio
async def test_undecryptable_bundle_is_reported(session_factory, secret_provider, now) -> None:
    own = await seed_session(
        session_factory,
        tenant_id="t1",
        credentials="v1:AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA",
        expires_at=now + timedelta(hours=1),
        updated_at=now,
    )
    resolver = CredentialResolver(secret_provider)
    async with session_factory() as session:
        with pytest.raises(CredentialDecryptionError):
            await resolver.resolve(session, tenant_id="t1", session_id=own, now=now)
