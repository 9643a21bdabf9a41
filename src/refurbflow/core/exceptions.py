"""RefurbFlow exception hierarchy.

Every workflow error is an expected, recoverable condition: it carries the
unit's current state plus whatever the caller needs to act on it.
"""

from __future__ import annotations

from typing import Any


class RefurbFlowError(Exception):
    """Base exception for all RefurbFlow errors."""


class WorkflowError(RefurbFlowError):
    """An engine operation was rejected; the unit was not modified."""

    def __init__(self, message: str, qlid: str = "", state: str | None = None) -> None:
        self.qlid = qlid
        self.state = state
        super().__init__(message)


class NotFoundError(WorkflowError):
    """A unit or step code does not exist."""


class UnitNotFoundError(NotFoundError):
    """No unit stored under the given QLID."""

    def __init__(self, qlid: str) -> None:
        super().__init__(f"Unit {qlid} not found", qlid=qlid)


class UnknownStepError(NotFoundError):
    """Step code does not belong to the unit's current stage."""

    def __init__(self, qlid: str, state: str, step_code: str) -> None:
        self.step_code = step_code
        super().__init__(
            f"Step {step_code!r} is not part of stage {state} for unit {qlid}",
            qlid=qlid,
            state=state,
        )


class InvalidStateError(WorkflowError):
    """Operation is not legal from the unit's current state."""

    def __init__(self, qlid: str, state: str, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} not allowed from state {state} (unit {qlid})", qlid=qlid, state=state)


class StepsIncompleteError(WorkflowError):
    """Advance attempted before every required step of the stage was satisfied."""

    def __init__(self, qlid: str, state: str, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"Unit {qlid} cannot leave {state}: required steps incomplete: {', '.join(missing)}",
            qlid=qlid,
            state=state,
        )


class MissingReasonError(WorkflowError):
    """Block or dispose requested without a reason."""

    def __init__(self, qlid: str, state: str, operation: str = "BLOCK") -> None:
        self.operation = operation
        super().__init__(f"{operation} for unit {qlid} requires a non-empty reason", qlid=qlid, state=state)


class MaxAttemptsExceededError(WorkflowError):
    """Retry requested with no repair attempts left."""

    def __init__(self, qlid: str, state: str, attempt_count: int, max_attempts: int) -> None:
        self.attempt_count = attempt_count
        self.max_attempts = max_attempts
        super().__init__(
            f"Unit {qlid} has used {attempt_count} of {max_attempts} attempts",
            qlid=qlid,
            state=state,
        )


class ValidationFailedError(WorkflowError):
    """Step payload does not match the step descriptor."""

    def __init__(self, qlid: str, step_code: str, errors: list[str], state: str | None = None) -> None:
        self.step_code = step_code
        self.errors = errors
        super().__init__(f"Step {step_code} payload rejected: {'; '.join(errors)}", qlid=qlid, state=state)


class ConflictError(WorkflowError):
    """A concurrent writer touched the unit first. Reload and re-apply."""

    def __init__(self, qlid: str, message: str = "", context: dict[str, Any] | None = None) -> None:
        self.context = context or {}
        super().__init__(message or f"Concurrent update detected for unit {qlid}", qlid=qlid)


class LockError(RefurbFlowError):
    """Per-unit lock backend operation failed."""
