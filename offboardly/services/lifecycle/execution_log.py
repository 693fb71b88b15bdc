from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from offboardly.domain.actions import ActionOutcome, OutcomeStatus
from offboardly.domain.models import ExecutionLog, ScheduledLifecycleChange
from offboardly.persistence.repos.execution_logs import add_execution_log
from offboardly.services.audit import ACTOR_SYSTEM, record_event


logger = logging.getLogger(__name__)

EXECUTE_EVENT = "lifecycle.execute"
REAP_EVENT = "lifecycle.reap"
RESOURCE_TYPE = "scheduled_lifecycle_change"


@dataclass(frozen=True)
class ExecutionCounts:
    total: int
    successful: int
    failed: int
    skipped: int


def tally_outcomes(outcomes: Iterable[ActionOutcome]) -> ExecutionCounts:
    # Warnings fold into skipped so successful + failed + skipped always equals total.
    total = successful = failed = skipped = 0
    for outcome in outcomes:
        total += 1
        if outcome.status == OutcomeStatus.SUCCESS:
            successful += 1
        elif outcome.status == OutcomeStatus.ERROR:
            failed += 1
        else:
            skipped += 1
    return ExecutionCounts(total=total, successful=successful, failed=failed, skipped=skipped)


def _audit_details(change: ScheduledLifecycleChange, status: str, error: str | None, fatal: bool) -> str:
    label = change.display_name or change.user_principal_name or change.email or change.user_object_id or change.id
    if fatal and error:
        return f"Automated offboarding {status} for {label}: {error}"
    return f"Automated offboarding {status} for {label}"


async def record_execution(
    session: AsyncSession,
    *,
    change: ScheduledLifecycleChange,
    status: str,
    outcomes: Iterable[ActionOutcome],
    started_at: datetime,
    ended_at: datetime,
    executed_by: str,
    error: str | None = None,
    fatal: bool = False,
    error_code: str | None = None,
    execution_type: str = "scheduled",
    event_type: str = EXECUTE_EVENT,
) -> ExecutionLog:
    """Append the execution log and its audit entry for one attempt.

    Both rows are added to ``session`` without committing so they land in the
    same transaction as the terminal status write.
    """
    ordered = list(outcomes)
    counts = tally_outcomes(ordered)
    log = ExecutionLog(
        tenant_id=change.tenant_id,
        session_id=change.session_id,
        change_id=change.id,
        target_user_id=change.user_object_id,
        target_user_name=change.display_name,
        target_user_email=change.email or change.user_principal_name,
        executed_by=executed_by,
        execution_type=execution_type,
        started_at=started_at,
        ended_at=ended_at,
        status=status,
        total_actions=counts.total,
        successful_actions=counts.successful,
        failed_actions=counts.failed,
        skipped_actions=counts.skipped,
        actions_json=[outcome.to_dict() for outcome in ordered],
        error=error,
    )
    await add_execution_log(session, log)
    await record_event(
        session,
        tenant_id=change.tenant_id,
        session_id=change.session_id,
        actor_type=ACTOR_SYSTEM,
        actor_id=executed_by,
        event_type=event_type,
        outcome=status,
        resource_type=RESOURCE_TYPE,
        resource_id=change.id,
        details=_audit_details(change, status, error, fatal),
        metadata={
            "execution_log_id": log.id,
            "total_actions": counts.total,
            "successful_actions": counts.successful,
            "failed_actions": counts.failed,
            "skipped_actions": counts.skipped,
        },
        error_code=error_code,
        occurred_at=ended_at,
    )
    logger.info(
        "lifecycle_execution_logged change_id=%s status=%s total=%s failed=%s",
        change.id,
        status,
        counts.total,
        counts.failed,
    )
    return log
