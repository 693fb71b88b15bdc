from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offboardly.core.config import Settings, get_settings
from offboardly.domain.actions import ActionResults
from offboardly.domain.state import LifecycleStatus, terminal_status
from offboardly.persistence.repos.lifecycle import (
    claim_change,
    finish_change,
    get_change,
    list_due_changes,
    list_stale_in_progress,
)
from offboardly.services.credentials import CredentialResolver
from offboardly.services.crypto.secrets import SecretProvider, SettingsSecretProvider
from offboardly.services.directory.actions import Clock
from offboardly.services.lifecycle.execution import run_pipeline
from offboardly.services.lifecycle.execution_log import REAP_EVENT, record_execution


logger = logging.getLogger(__name__)

RESULT_SKIPPED = "skipped"
RESULT_MISSING = "missing"
RESULT_ERROR = "error"

# The terminal write gets one retry in a fresh session; the reaper covers anything left after that.
_FINALIZE_ATTEMPTS = 2


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChangeResult:
    change_id: str
    status: str
    error: str | None = None


@dataclass
class ScanSummary:
    processed: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    reaped: int = 0
    results: list[ChangeResult] = field(default_factory=list)

    def add(self, result: ChangeResult) -> None:
        self.results.append(result)
        if result.status == LifecycleStatus.COMPLETED.value:
            self.completed += 1
        elif result.status == LifecycleStatus.FAILED.value:
            self.failed += 1
        elif result.status == RESULT_ERROR:
            self.errors += 1
        else:
            self.skipped += 1


class LifecycleScanner:
    """Find due lifecycle changes and execute them one at a time.

    Each record goes through three short transactions: the claim, the
    execution reads, and the terminal write with its execution log. The
    record is re-read by id in every phase, so no ORM state is carried
    across a commit and any ``async_sessionmaker`` works.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        http_client: httpx.AsyncClient,
        secret_provider: SecretProvider,
        settings: Settings,
        clock: Clock = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._http = http_client
        self._resolver = CredentialResolver(secret_provider)
        self._settings = settings
        self._clock = clock

    async def scan(self, *, limit: int | None = None) -> ScanSummary:
        batch = max(1, int(limit or self._settings.lifecycle_scan_batch_size))
        now = self._clock()
        summary = ScanSummary()
        summary.reaped = await self.reap_stale(now=now)
        async with self._session_factory() as session:
            due = await list_due_changes(session, now=now, limit=batch)
            due_ids = [change.id for change in due]
        summary.processed = len(due_ids)
        # Strictly sequential: one record's full pipeline finishes before the next starts.
        for change_id in due_ids:
            summary.add(await self.process_change(change_id))
        logger.info(
            "lifecycle_scan_finished processed=%s completed=%s failed=%s skipped=%s errors=%s reaped=%s",
            summary.processed,
            summary.completed,
            summary.failed,
            summary.skipped,
            summary.errors,
            summary.reaped,
        )
        return summary

    async def process_change(self, change_id: str) -> ChangeResult:
        executed_by = self._settings.lifecycle_executor_id
        started_at = self._clock()
        try:
            async with self._session_factory() as session:
                if await get_change(session, change_id) is None:
                    return ChangeResult(change_id=change_id, status=RESULT_MISSING)
                claimed = await claim_change(session, change_id=change_id, executed_by=executed_by, now=started_at)
                await session.commit()
        except SQLAlchemyError:
            logger.exception("lifecycle_claim_failed change_id=%s", change_id)
            return ChangeResult(change_id=change_id, status=RESULT_ERROR, error="claim failed")
        if not claimed:
            # Another scanner got here first, or the record was edited out of scheduled.
            logger.info("lifecycle_claim_rejected change_id=%s", change_id)
            return ChangeResult(change_id=change_id, status=RESULT_SKIPPED)

        results = ActionResults()
        fatal: Exception | None = None
        try:
            async with self._session_factory() as session:
                change = await get_change(session, change_id)
                if change is None:
                    raise LookupError(f"Lifecycle change {change_id} disappeared after claim")
                results = await run_pipeline(
                    session,
                    change,
                    resolver=self._resolver,
                    http_client=self._http,
                    settings=self._settings,
                    now=started_at,
                    clock=self._clock,
                )
        except Exception as exc:
            fatal = exc
            logger.warning("lifecycle_execution_aborted change_id=%s error=%s", change_id, type(exc).__name__)

        ended_at = self._clock()
        if fatal is not None:
            status = LifecycleStatus.FAILED
            error: str | None = str(fatal) or type(fatal).__name__
            error_code: str | None = type(fatal).__name__
        else:
            status = terminal_status(results.has_failures)
            error = results.failure_summary()
            error_code = None

        for attempt in range(1, _FINALIZE_ATTEMPTS + 1):
            try:
                return await self._finalize(
                    change_id,
                    status=status,
                    results=results,
                    started_at=started_at,
                    ended_at=ended_at,
                    executed_by=executed_by,
                    error=error,
                    fatal=fatal is not None,
                    error_code=error_code,
                )
            except SQLAlchemyError:
                logger.exception("lifecycle_finalize_failed change_id=%s attempt=%s", change_id, attempt)
        return ChangeResult(change_id=change_id, status=RESULT_ERROR, error="finalize failed")

    async def _finalize(
        self,
        change_id: str,
        *,
        status: LifecycleStatus,
        results: ActionResults,
        started_at: datetime,
        ended_at: datetime,
        executed_by: str,
        error: str | None,
        fatal: bool,
        error_code: str | None,
    ) -> ChangeResult:
        # Terminal status, execution log and audit event commit together or not at all.
        async with self._session_factory() as session:
            change = await get_change(session, change_id)
            if change is None:
                return ChangeResult(change_id=change_id, status=RESULT_MISSING)
            if not await finish_change(session, change_id=change_id, status=status, now=ended_at, error=error):
                # The reaper (or an operator) already closed this attempt and logged it.
                await session.rollback()
                logger.warning("lifecycle_finalize_superseded change_id=%s", change_id)
                return ChangeResult(change_id=change_id, status=RESULT_SKIPPED, error=error)
            await record_execution(
                session,
                change=change,
                status=status.value,
                outcomes=results.outcomes,
                started_at=started_at,
                ended_at=ended_at,
                executed_by=executed_by,
                error=error,
                fatal=fatal,
                error_code=error_code,
            )
            await session.commit()
        return ChangeResult(change_id=change_id, status=status.value, error=error)

    async def reap_stale(self, *, now: datetime) -> int:
        # Fail records whose execution never finished, e.g. after a worker crash.
        minutes = int(self._settings.lifecycle_stale_after_minutes)
        if minutes <= 0:
            return 0
        reaped = 0
        error = f"Execution did not finish within {minutes} minutes"
        async with self._session_factory() as session:
            try:
                stale = await list_stale_in_progress(
                    session,
                    claimed_before=now - timedelta(minutes=minutes),
                    limit=self._settings.lifecycle_scan_batch_size,
                )
                for change in stale:
                    if not await finish_change(
                        session,
                        change_id=change.id,
                        status=LifecycleStatus.FAILED,
                        now=now,
                        error=error,
                    ):
                        continue
                    await record_execution(
                        session,
                        change=change,
                        status=LifecycleStatus.FAILED.value,
                        outcomes=(),
                        started_at=change.executed_at or now,
                        ended_at=now,
                        executed_by=self._settings.lifecycle_executor_id,
                        error=error,
                        fatal=True,
                        error_code="StaleExecution",
                        event_type=REAP_EVENT,
                    )
                    logger.warning("lifecycle_change_reaped change_id=%s", change.id)
                    reaped += 1
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                logger.exception("lifecycle_reap_failed")
                return 0
        return reaped


async def scan_and_process_due_changes(
    *,
    limit: int | None = None,
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    secret_provider: SecretProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
    clock: Clock = _utc_now,
) -> ScanSummary:
    # Wire default collaborators at the edge; business code only sees injected ones.
    resolved_settings = settings or get_settings()
    if session_factory is None:
        from offboardly.persistence.db import SessionLocal

        session_factory = SessionLocal
    provider = secret_provider or SettingsSecretProvider(resolved_settings)
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=resolved_settings.ext_call_timeout_ms / 1000)
    try:
        scanner = LifecycleScanner(
            session_factory=session_factory,
            http_client=client,
            secret_provider=provider,
            settings=resolved_settings,
            clock=clock,
        )
        return await scanner.scan(limit=limit)
    finally:
        if owns_client:
            await client.aclose()
