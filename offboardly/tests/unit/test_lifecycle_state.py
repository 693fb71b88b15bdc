from __future__ import annotations

import pytest

from offboardly.core.errors import InvalidTransitionError
from offboardly.domain.state import (
    LifecycleStatus,
    can_transition,
    ensure_transition,
    terminal_status,
)


def test_forward_transitions_are_allowed() -> None:
    assert can_transition("scheduled", "in-progress")
    assert can_transition(LifecycleStatus.IN_PROGRESS, LifecycleStatus.COMPLETED)
    assert can_transition("in-progress", "failed")


@pytest.mark.parametrize(
    ("current", "target"),
    [
        ("in-progress", "scheduled"),
        ("completed", "in-progress"),
        ("failed", "scheduled"),
        ("scheduled", "completed"),
        ("completed", "failed"),
    ],
)
def test_backward_and_skipping_transitions_are_rejected(current: str, target: str) -> None:
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        ensure_transition(current, target)


def test_unknown_status_is_rejected() -> None:
    with pytest.raises(InvalidTransitionError):
        ensure_transition("scheduled", "paused")


def test_terminal_status_follows_failures() -> None:
    assert terminal_status(True) is LifecycleStatus.FAILED
    assert terminal_status(False) is LifecycleStatus.COMPLETED
