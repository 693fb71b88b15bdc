from __future__ import annotations

import os

# Point the module-level engine at SQLite before any offboardly import creates it.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from offboardly.core.config import Settings
from offboardly.domain.models import Base
from offboardly.services.crypto.credentials import CredentialCipher
from offboardly.services.crypto.secrets import StaticSecretProvider
from offboardly.tests.utils.directory import FakeDirectory


TEST_KEY = bytes(range(32))


@pytest.fixture
async def db_engine():
    # One shared in-memory connection so every session sees the same tables.
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def secret_provider() -> StaticSecretProvider:
    return StaticSecretProvider(TEST_KEY)


@pytest.fixture
def cipher(secret_provider) -> CredentialCipher:
    return CredentialCipher(secret_provider)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        lifecycle_scan_batch_size=5,
        lifecycle_stale_after_minutes=0,
        credential_encryption_key=None,
    )


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
async def http_client(directory):
    client = directory.client()
    yield client
    await client.aclose()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
