from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    # Definition order is execution order.
    DISABLE_ACCOUNT = "disableAccount"
    REVOKE_ACCESS = "revokeAccess"
    REMOVE_FROM_GROUPS = "removeFromGroups"
    CONVERT_TO_SHARED_MAILBOX = "convertToSharedMailbox"
    FORWARD_EMAIL = "forwardEmail"
    BACKUP_DATA = "backupData"
    REMOVE_DEVICES = "removeDevices"


ACTION_ORDER: tuple[ActionKind, ...] = tuple(ActionKind)


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"
    WARNING = "warning"


class ActionSettings(BaseModel):
    # Persisted action configuration; camelCase aliases match stored payloads.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    disable_account: bool = Field(default=False, alias="disableAccount")
    revoke_access: bool = Field(default=False, alias="revokeAccess")
    remove_from_groups: bool = Field(default=False, alias="removeFromGroups")
    convert_to_shared_mailbox: bool = Field(default=False, alias="convertToSharedMailbox")
    forward_email: str | None = Field(default=None, alias="forwardEmail")
    backup_data: bool = Field(default=False, alias="backupData")
    remove_devices: bool = Field(default=False, alias="removeDevices")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class ActionOutcome:
    action: str
    status: OutcomeStatus
    message: str
    timestamp: datetime
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "action": self.action,
            "status": self.status.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.details is not None:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True)
class TargetUser:
    # Any single identifier may be the only one available.
    object_id: str | None = None
    user_principal_name: str | None = None
    email: str | None = None
    display_name: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.user_principal_name or self.email or self.object_id or "unknown user"


@dataclass(frozen=True)
class ActionResults:
    outcomes: tuple[ActionOutcome, ...] = field(default_factory=tuple)

    @property
    def has_failures(self) -> bool:
        return any(outcome.status == OutcomeStatus.ERROR for outcome in self.outcomes)

    def failure_summary(self) -> str | None:
        failed = [o for o in self.outcomes if o.status == OutcomeStatus.ERROR]
        if not failed:
            return None
        return "; ".join(f"{o.action}: {o.message}" for o in failed)
