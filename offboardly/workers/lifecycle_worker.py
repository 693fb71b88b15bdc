from __future__ import annotations

import logging

import httpx
from arq import cron
from arq.connections import RedisSettings

from offboardly.core.config import get_settings
from offboardly.core.logging import configure_logging
from offboardly.persistence.db import SessionLocal, engine
from offboardly.services.crypto.secrets import SettingsSecretProvider
from offboardly.services.lifecycle.scanner import scan_and_process_due_changes


logger = logging.getLogger(__name__)


async def scan_due_changes(ctx, limit: int | None = None) -> int:
    # Run one scan; cron fires it every minute and operators may enqueue it with a batch override.
    summary = await scan_and_process_due_changes(
        limit=limit,
        settings=ctx["settings"],
        session_factory=SessionLocal,
        secret_provider=ctx["secret_provider"],
        http_client=ctx["http_client"],
    )
    return summary.processed


async def _startup(ctx) -> None:
    # Build shared collaborators once per worker process.
    configure_logging()
    settings = get_settings()
    ctx["settings"] = settings
    ctx["secret_provider"] = SettingsSecretProvider(settings)
    ctx["http_client"] = httpx.AsyncClient(timeout=settings.ext_call_timeout_ms / 1000)
    logger.info("lifecycle_worker_started queue=%s", settings.lifecycle_queue_name)


async def _shutdown(ctx) -> None:
    # Close pooled connections to avoid dangling sockets on exit.
    client = ctx.get("http_client")
    if client is not None:
        await client.aclose()
    await engine.dispose()


class WorkerSettings:
    # Keep worker configuration as class attributes for arq CLI compatibility.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.lifecycle_queue_name
    # Failed records are never retried automatically.
    max_tries = 1
    job_timeout = settings.lifecycle_job_timeout_s
    functions = [scan_due_changes]
    # unique=True keeps overlapping cron ticks from running the same scan twice.
    cron_jobs = [
        cron(scan_due_changes, name="scan-due-lifecycle-changes", minute=None, second=0, unique=True, run_at_startup=True),
    ]
    on_startup = _startup
    on_shutdown = _shutdown
