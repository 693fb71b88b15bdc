from __future__ import annotations

from enum import Enum

from offboardly.core.errors import InvalidTransitionError


class LifecycleStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"


# Status only moves forward; terminal states have no exits.
ALLOWED_TRANSITIONS: dict[LifecycleStatus, frozenset[LifecycleStatus]] = {
    LifecycleStatus.SCHEDULED: frozenset({LifecycleStatus.IN_PROGRESS}),
    LifecycleStatus.IN_PROGRESS: frozenset({LifecycleStatus.COMPLETED, LifecycleStatus.FAILED}),
    LifecycleStatus.COMPLETED: frozenset(),
    LifecycleStatus.FAILED: frozenset(),
}


def _normalize_status(value: str | LifecycleStatus) -> LifecycleStatus:
    try:
        return LifecycleStatus(value)
    except ValueError as exc:
        raise InvalidTransitionError(f"unknown lifecycle status: {value}") from exc


def can_transition(current: str | LifecycleStatus, target: str | LifecycleStatus) -> bool:
    return _normalize_status(target) in ALLOWED_TRANSITIONS[_normalize_status(current)]


def ensure_transition(current: str | LifecycleStatus, target: str | LifecycleStatus) -> LifecycleStatus:
    # Reject regressions and skips before any write is attempted.
    origin = _normalize_status(current)
    resolved = _normalize_status(target)
    if resolved not in ALLOWED_TRANSITIONS[origin]:
        raise InvalidTransitionError(f"cannot move lifecycle change from {origin.value} to {resolved.value}")
    return resolved


def terminal_status(has_failures: bool) -> LifecycleStatus:
    return LifecycleStatus.FAILED if has_failures else LifecycleStatus.COMPLETED
