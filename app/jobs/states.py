"""Framework controller state vocabulary and the job state machine exposed to clients."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class JobState(str, Enum):
    WAITING = "WAITING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


class FrameworkState(str, Enum):
    """Attempt/task states reported by the framework controller."""

    ATTEMPT_CREATION_PENDING = "AttemptCreationPending"
    ATTEMPT_CREATION_REQUESTED = "AttemptCreationRequested"
    ATTEMPT_PREPARING = "AttemptPreparing"
    ATTEMPT_RUNNING = "AttemptRunning"
    ATTEMPT_DELETION_PENDING = "AttemptDeletionPending"
    ATTEMPT_DELETION_REQUESTED = "AttemptDeletionRequested"
    ATTEMPT_DELETING = "AttemptDeleting"
    ATTEMPT_COMPLETED = "AttemptCompleted"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, raw: Any) -> Optional["FrameworkState"]:
        """Return the matching state, or None for anything the controller added later."""
        try:
            return cls(raw)
        except ValueError:
            return None


_WAITING_STATES = frozenset({
    FrameworkState.ATTEMPT_CREATION_PENDING,
    FrameworkState.ATTEMPT_CREATION_REQUESTED,
    FrameworkState.ATTEMPT_PREPARING,
    FrameworkState.ATTEMPT_DELETION_PENDING,
    FrameworkState.ATTEMPT_DELETION_REQUESTED,
    FrameworkState.ATTEMPT_DELETING,
    FrameworkState.ATTEMPT_COMPLETED,
})


def convert_state(state: Any, exit_code: Optional[int]) -> JobState:
    """Map a controller state plus completion exit code onto a JobState. Never raises."""
    framework_state = FrameworkState.parse(state)
    if framework_state is None:
        return JobState.UNKNOWN
    if framework_state in _WAITING_STATES:
        return JobState.WAITING
    if framework_state is FrameworkState.ATTEMPT_RUNNING:
        return JobState.RUNNING
    if framework_state is FrameworkState.COMPLETED:
        # strict: False and "0" are not a zero exit code
        if isinstance(exit_code, (int, float)) and not isinstance(exit_code, bool) and exit_code == 0:
            return JobState.SUCCEEDED
        return JobState.FAILED
    return JobState.UNKNOWN


def retry_details(total_retried: int, accountable_retried: int) -> dict:
    """Split the controller's retry counters into user/platform/resource buckets."""
    return {
        "user": accountable_retried,
        "platform": total_retried - accountable_retried,
        "resource": 0,
    }
