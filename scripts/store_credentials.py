from __future__ import annotations

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
import getpass
from uuid import uuid4

from offboardly.core.config import get_settings
from offboardly.persistence.db import SessionLocal, engine
from offboardly.persistence.repos.sessions import create_session
from offboardly.services.audit import ACTOR_USER, record_event
from offboardly.services.crypto.credentials import CredentialCipher, DirectoryCredentials
from offboardly.services.crypto.secrets import SettingsSecretProvider


def _build_parser() -> argparse.ArgumentParser:
    # Prompt for the client secret instead of accepting it on the command line.
    parser = argparse.ArgumentParser(description="Store encrypted directory credentials for a tenant")
    parser.add_argument("--tenant", required=True, help="Tenant identifier")
    parser.add_argument("--client-id", required=True, help="Directory application (client) id")
    parser.add_argument("--directory-tenant", required=True, help="Directory tenant id")
    parser.add_argument("--user-id", required=True, help="Administrator storing the credential")
    parser.add_argument("--session-id", default=None, help="Session id to attach (generated if omitted)")
    parser.add_argument("--ttl-hours", type=int, default=8, help="Session validity window")
    return parser


async def _store(args: argparse.Namespace) -> None:
    settings = get_settings()
    secret = getpass.getpass("Client secret: ").strip() or None
    cipher = CredentialCipher(SettingsSecretProvider(settings))
    bundle = cipher.encrypt(
        DirectoryCredentials(client_id=args.client_id, tenant_id=args.directory_tenant, client_secret=secret),
        tenant_id=args.tenant,
    )
    session_id = args.session_id or uuid4().hex
    try:
        async with SessionLocal() as session:
            await create_session(
                session,
                session_id=session_id,
                tenant_id=args.tenant,
                user_id=args.user_id,
                credentials=bundle,
                expires_at=datetime.now(timezone.utc) + timedelta(hours=args.ttl_hours),
            )
            await record_event(
                session,
                tenant_id=args.tenant,
                session_id=session_id,
                actor_type=ACTOR_USER,
                actor_id=args.user_id,
                event_type="credentials.store",
                outcome="success",
                resource_type="session",
                resource_id=session_id,
                details="Stored directory credentials",
            )
            await session.commit()
    finally:
        await engine.dispose()
    print(f"session_id={session_id}")


if __name__ == "__main__":
    asyncio.run(_store(_build_parser().parse_args()))
