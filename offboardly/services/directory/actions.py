from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Callable, ClassVar

from offboardly.core.errors import ActionExecutionError, UnsupportedActionWarning
from offboardly.domain.actions import (
    ACTION_ORDER,
    ActionKind,
    ActionOutcome,
    ActionResults,
    ActionSettings,
    OutcomeStatus,
    TargetUser,
)
from offboardly.services.directory.client import DirectoryClient


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionContext:
    """Per-attempt state shared by the actions of one lifecycle change."""

    def __init__(self, client: DirectoryClient, target: TargetUser, *, clock: Clock = _utc_now) -> None:
        self.client = client
        self.target = target
        self.clock = clock
        self._object_id = target.object_id

    async def user_key(self) -> str:
        # Most user endpoints accept either the object id or the principal name.
        if self.target.object_id:
            return self.target.object_id
        if self.target.user_principal_name:
            return self.target.user_principal_name
        return await self.object_id()

    async def object_id(self) -> str:
        # Membership calls need the durable object id; resolve once per attempt.
        if self._object_id:
            return self._object_id
        resolved: str | None = None
        if self.target.user_principal_name:
            resolved = await self.client.get_user_id(self.target.user_principal_name)
        if resolved is None and self.target.email:
            resolved = await self.client.find_user_id_by_mail(self.target.email)
        if resolved is None:
            raise ActionExecutionError(f"Could not resolve directory object id for {self.target.label}")
        self._object_id = resolved
        return resolved


class LifecycleAction(ABC):
    kind: ClassVar[ActionKind]

    @abstractmethod
    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        ...

    def outcome(
        self,
        ctx: ActionContext,
        status: OutcomeStatus,
        message: str,
        details: str | None = None,
    ) -> ActionOutcome:
        return ActionOutcome(
            action=self.kind.value,
            status=status,
            message=message,
            timestamp=ctx.clock(),
            details=details,
        )


@dataclass(frozen=True)
class DisableAccount(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.DISABLE_ACCOUNT

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        await ctx.client.disable_user(await ctx.user_key())
        return self.outcome(ctx, OutcomeStatus.SUCCESS, "Account disabled")


@dataclass(frozen=True)
class RevokeAccess(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.REVOKE_ACCESS

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        await ctx.client.revoke_sign_in_sessions(await ctx.user_key())
        return self.outcome(ctx, OutcomeStatus.SUCCESS, "User sessions revoked")


@dataclass(frozen=True)
class RemoveFromGroups(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.REMOVE_FROM_GROUPS

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        object_id = await ctx.object_id()
        groups = await ctx.client.list_group_memberships(object_id)
        removed = 0
        failures: list[str] = []
        for group in groups:
            group_id = str(group["id"])
            label = group.get("displayName") or group_id
            try:
                await ctx.client.remove_group_member(group_id, object_id)
            except ActionExecutionError as exc:
                # Membership already gone counts as removed.
                if exc.status_code == 404:
                    removed += 1
                    continue
                failures.append(f"{label}: {exc.message}")
                continue
            removed += 1
        if failures:
            return self.outcome(
                ctx,
                OutcomeStatus.ERROR,
                f"Removed from {removed} of {len(groups)} groups; {len(failures)} failed",
                details="; ".join(failures),
            )
        return self.outcome(ctx, OutcomeStatus.SUCCESS, f"Removed from {removed} groups")


@dataclass(frozen=True)
class ConvertToSharedMailbox(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.CONVERT_TO_SHARED_MAILBOX

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        raise UnsupportedActionWarning("Server-side mailbox conversion not implemented", status="warning")


@dataclass(frozen=True)
class ForwardEmail(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.FORWARD_EMAIL
    address: str

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        raise UnsupportedActionWarning(
            f"Mail forwarding to {self.address} must be configured in the mail platform",
            status="warning",
        )


@dataclass(frozen=True)
class BackupData(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.BACKUP_DATA

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        raise UnsupportedActionWarning("Data export requires manual review", status="skipped")


@dataclass(frozen=True)
class RemoveDevices(LifecycleAction):
    kind: ClassVar[ActionKind] = ActionKind.REMOVE_DEVICES

    async def execute(self, ctx: ActionContext) -> ActionOutcome:
        raise UnsupportedActionWarning("Device retirement handled by device management automation", status="skipped")


_ActionFactory = Callable[[ActionSettings], "LifecycleAction | None"]

# Every ActionKind maps to exactly one factory; None means "not configured".
_ACTION_FACTORIES: dict[ActionKind, _ActionFactory] = {
    ActionKind.DISABLE_ACCOUNT: lambda s: DisableAccount() if s.disable_account else None,
    ActionKind.REVOKE_ACCESS: lambda s: RevokeAccess() if s.revoke_access else None,
    ActionKind.REMOVE_FROM_GROUPS: lambda s: RemoveFromGroups() if s.remove_from_groups else None,
    ActionKind.CONVERT_TO_SHARED_MAILBOX: lambda s: ConvertToSharedMailbox() if s.convert_to_shared_mailbox else None,
    ActionKind.FORWARD_EMAIL: lambda s: ForwardEmail(address=s.forward_email) if s.forward_email else None,
    ActionKind.BACKUP_DATA: lambda s: BackupData() if s.backup_data else None,
    ActionKind.REMOVE_DEVICES: lambda s: RemoveDevices() if s.remove_devices else None,
}


def build_actions(settings: ActionSettings) -> list[LifecycleAction]:
    # Materialize configured actions in the fixed execution order.
    actions: list[LifecycleAction] = []
    for kind in ACTION_ORDER:
        action = _ACTION_FACTORIES[kind](settings)
        if action is not None:
            actions.append(action)
    return actions


def _status_for_warning(warning: UnsupportedActionWarning) -> OutcomeStatus:
    try:
        status = OutcomeStatus(warning.status)
    except ValueError:
        return OutcomeStatus.WARNING
    if status in (OutcomeStatus.SUCCESS, OutcomeStatus.ERROR):
        return OutcomeStatus.WARNING
    return status


async def execute_actions(actions: list[LifecycleAction], ctx: ActionContext) -> ActionResults:
    """Run ``actions`` in order, converting each failure into an outcome.

    A failing action never stops the ones after it; every action yields
    exactly one outcome.
    """
    outcomes: list[ActionOutcome] = []
    for action in actions:
        try:
            outcome = await action.execute(ctx)
        except UnsupportedActionWarning as warning:
            outcome = action.outcome(ctx, _status_for_warning(warning), warning.message)
        except ActionExecutionError as exc:
            logger.warning(
                "lifecycle_action_failed action=%s status=%s error_code=%s",
                action.kind.value,
                exc.status_code,
                exc.error_code,
            )
            details = f"HTTP {exc.status_code}" if exc.status_code else None
            outcome = action.outcome(ctx, OutcomeStatus.ERROR, exc.message, details=details)
        except Exception as exc:
            logger.exception("lifecycle_action_crashed action=%s", action.kind.value)
            outcome = action.outcome(ctx, OutcomeStatus.ERROR, str(exc) or type(exc).__name__)
        outcomes.append(outcome)
    return ActionResults(outcomes=tuple(outcomes))
