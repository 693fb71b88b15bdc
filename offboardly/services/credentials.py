from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.core.errors import CredentialsNotFound
from offboardly.persistence.repos import sessions as sessions_repo
from offboardly.services.crypto.credentials import CredentialCipher, DirectoryCredentials
from offboardly.services.crypto.secrets import SecretProvider


logger = logging.getLogger(__name__)


class CredentialResolver:
    """Resolve the directory credential to use for a tenant's lifecycle change.

    Resolution order:

    1. the unexpired session named by ``session_id``, if it carries a credential;
    2. otherwise the most recently updated session of the tenant that carries one.

    Decryption happens in memory with the key handed out by ``secret_provider``;
    nothing is written back.
    """

    def __init__(self, secret_provider: SecretProvider) -> None:
        self._cipher = CredentialCipher(secret_provider)

    async def resolve(
        self,
        session: AsyncSession,
        *,
        tenant_id: str,
        session_id: str | None,
        now: datetime | None = None,
    ) -> DirectoryCredentials:
        resolved_now = now or datetime.now(timezone.utc)
        bundle: str | None = None
        if session_id:
            bundle = await sessions_repo.get_valid_session_credentials(
                session, session_id=session_id, now=resolved_now
            )
            if bundle:
                logger.debug("credentials_resolved source=session tenant_id=%s", tenant_id)
        if not bundle:
            bundle = await sessions_repo.get_latest_tenant_credentials(session, tenant_id=tenant_id)
            if bundle:
                logger.info("credentials_resolved source=tenant_fallback tenant_id=%s", tenant_id)
        if not bundle:
            raise CredentialsNotFound(f"No saved credentials for tenant {tenant_id}")
        return self._cipher.decrypt(bundle, tenant_id=tenant_id)
