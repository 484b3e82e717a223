"""SyncLog status state machine.

    PENDING -> IN_PROGRESS -> SUCCESS | PARTIAL_SUCCESS | FAILED | CANCELLED
    PENDING -> CANCELLED | FAILED

Terminal rows are immutable; every transition is applied as a
compare-and-set on the current status (see SyncLogRepository.transition).
"""

from enum import Enum


class SyncStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
    SyncStatus.SUCCESS,
    SyncStatus.PARTIAL_SUCCESS,
    SyncStatus.FAILED,
    SyncStatus.CANCELLED,
})

ALLOWED_TRANSITIONS: dict[SyncStatus, frozenset[SyncStatus]] = {
    # FAILED from PENDING covers a crash before the run started
    SyncStatus.PENDING: frozenset({SyncStatus.IN_PROGRESS, SyncStatus.CANCELLED, SyncStatus.FAILED}),
    SyncStatus.IN_PROGRESS: TERMINAL_STATUSES,
}


class InvalidTransition(Exception):
    """Raised when a transition is not allowed by the state machine."""

    pass


def is_terminal(status: str) -> bool:
    return SyncStatus(status) in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    """Check whether ``current -> target`` is a legal edge."""
    allowed = ALLOWED_TRANSITIONS.get(SyncStatus(current), frozenset())
    return SyncStatus(target) in allowed


def resolve_terminal_status(succeeded: int, failed: int) -> SyncStatus:
    """Terminal status for a run that reached the end of its records.

    - no failures (including zero records) -> SUCCESS
    - some failures and some successes -> PARTIAL_SUCCESS
    - only failures -> FAILED
    """
    if failed == 0:
        return SyncStatus.SUCCESS
    if succeeded > 0:
        return SyncStatus.PARTIAL_SUCCESS
    return SyncStatus.FAILED
