from __future__ import annotations

from datetime import datetime

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.core.config import Settings
from offboardly.domain.actions import ActionResults, ActionSettings, TargetUser
from offboardly.domain.models import ScheduledLifecycleChange
from offboardly.services.credentials import CredentialResolver
from offboardly.services.directory.actions import (
    ActionContext,
    Clock,
    build_actions,
    execute_actions,
)
from offboardly.services.directory.client import DirectoryClient
from offboardly.services.directory.token import acquire_token


def target_for(change: ScheduledLifecycleChange) -> TargetUser:
    return TargetUser(
        object_id=change.user_object_id,
        user_principal_name=change.user_principal_name,
        email=change.email,
        display_name=change.display_name,
    )


async def run_pipeline(
    session: AsyncSession,
    change: ScheduledLifecycleChange,
    *,
    resolver: CredentialResolver,
    http_client: httpx.AsyncClient,
    settings: Settings,
    now: datetime,
    clock: Clock,
) -> ActionResults:
    # Credential and token failures propagate; per-action failures come back as outcomes.
    action_settings = ActionSettings.model_validate(change.actions_json or {})
    actions = build_actions(action_settings)
    credentials = await resolver.resolve(
        session,
        tenant_id=change.tenant_id,
        session_id=change.session_id,
        now=now,
    )
    token = await acquire_token(
        credentials,
        http_client=http_client,
        authority=settings.directory_token_authority,
        scope=settings.directory_token_scope,
    )
    client = DirectoryClient(http_client, access_token=token, base_url=settings.directory_api_base_url)
    ctx = ActionContext(client, target_for(change), clock=clock)
    return await execute_actions(actions, ctx)
