"""Stage Transition Engine: the per-unit refurbishment state machine.

Each operation validates its preconditions against the unit snapshot it is
given and returns a ``TransitionResult`` holding a new snapshot plus the
events to record. On any failed precondition it raises before building
anything, so a rejected call never leaves partial changes behind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from refurbflow.core.exceptions import (
    InvalidStateError,
    MaxAttemptsExceededError,
    MissingReasonError,
    StepsIncompleteError,
    ValidationFailedError,
)
from refurbflow.core.protocols import IStepCatalog
from refurbflow.models.events import TransitionAction, TransitionEvent, TransitionResult
from refurbflow.models.steps import CompletedStepRecord, StepDescriptor
from refurbflow.models.unit import Disposition, FinalGrade, RefurbState, Unit, utcnow
from refurbflow.workflow import attempts
from refurbflow.workflow.states import ADVANCE_TARGET, BLOCKABLE, DISPOSABLE, RESOLVABLE
from refurbflow.workflow.step_executor import missing_required_steps, next_step_index

logger = logging.getLogger(__name__)

S = RefurbState


def _reason_given(reason: str | None) -> bool:
    return reason is not None and reason.strip() != ""


class StageTransitionEngine:
    """Validates and applies state transitions for a single unit at a time."""

    def __init__(self, catalog: IStepCatalog) -> None:
        self._catalog = catalog

    def steps_for(self, unit: Unit, state: RefurbState | None = None) -> tuple[StepDescriptor, ...]:
        """Step list of ``state`` (default: the unit's current state) for the unit's category."""
        return tuple(self._catalog.get_steps_for_stage(state or unit.current_state, unit.category))

    # ---- internals ----

    def _move(
        self,
        unit: Unit,
        to_state: RefurbState,
        action: TransitionAction,
        *,
        actor: str,
        now: datetime | None,
        reason: str | None = None,
        notes: str | None = None,
        **updates: Any,
    ) -> TransitionResult:
        now = now or utcnow()
        changes: dict[str, Any] = {"current_state": to_state, "updated_at": now, **updates}
        if to_state == S.IN_PROGRESS and unit.started_at is None:
            changes["started_at"] = now
        if to_state in (S.COMPLETE, S.FAILED_DISPOSITION):
            changes["completed_at"] = now
        event = TransitionEvent(
            qlid=unit.qlid,
            from_state=unit.current_state,
            to_state=to_state,
            action=action,
            actor=actor,
            timestamp=now,
            reason=reason,
            notes=notes,
        )
        logger.info("Unit %s %s: %s -> %s", unit.qlid, action.value, unit.current_state.value, to_state.value)
        return TransitionResult(unit=unit.model_copy(update=changes), events=[event])

    def _require_stage_complete(self, unit: Unit, records: Iterable[CompletedStepRecord]) -> None:
        missing = missing_required_steps(self.steps_for(unit), records)
        if missing:
            raise StepsIncompleteError(unit.qlid, unit.current_state.value, missing)

    # ---- lifecycle ----

    def create(self, unit: Unit, actor: str = "", now: datetime | None = None) -> TransitionResult:
        """Register a freshly received unit in the initial queued state."""
        now = now or utcnow()
        unit = unit.model_copy(update={
            "current_state": S.QUEUED,
            "current_step_index": 0,
            "attempt_count": 0,
            "created_at": now,
            "updated_at": now,
            "version": 0,
        })
        event = TransitionEvent(
            qlid=unit.qlid, from_state=None, to_state=S.QUEUED,
            action=TransitionAction.CREATE, actor=actor, timestamp=now,
        )
        return TransitionResult(unit=unit, events=[event])

    # ---- main path ----

    def advance(
        self,
        unit: Unit,
        records: Iterable[CompletedStepRecord] = (),
        actor: str = "",
        notes: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Move exactly one hop forward along the main path."""
        target = ADVANCE_TARGET[unit.current_state]
        if target is None:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "ADVANCE")
        self._require_stage_complete(unit, records)
        return self._move(
            unit, target, TransitionAction.ADVANCE,
            actor=actor, now=now, notes=notes, current_step_index=0,
        )

    def assign(
        self, unit: Unit, technician_id: str, actor: str = "", now: datetime | None = None
    ) -> TransitionResult:
        """Assign a technician; a queued unit also advances to ASSIGNED."""
        if unit.current_state in (S.COMPLETE, S.FAILED_DISPOSITION):
            raise InvalidStateError(unit.qlid, unit.current_state.value, "ASSIGN")
        if not _reason_given(technician_id):
            raise ValidationFailedError(
                unit.qlid, "ASSIGN", ["technician_id: required"], state=unit.current_state.value
            )
        now = now or utcnow()
        if unit.current_state == S.QUEUED:
            return self._move(
                unit, S.ASSIGNED, TransitionAction.ADVANCE,
                actor=actor or technician_id, now=now,
                assigned_technician_id=technician_id, current_step_index=0,
            )
        updated = unit.model_copy(update={"assigned_technician_id": technician_id, "updated_at": now})
        return TransitionResult(unit=updated, events=[])

    # ---- escape hatches ----

    def block(
        self, unit: Unit, reason: str, actor: str = "", now: datetime | None = None
    ) -> TransitionResult:
        if unit.current_state not in BLOCKABLE:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "BLOCK")
        if not _reason_given(reason):
            raise MissingReasonError(unit.qlid, unit.current_state.value, "BLOCK")
        return self._move(
            unit, S.BLOCKED, TransitionAction.BLOCK,
            actor=actor, now=now, reason=reason,
            prior_state=unit.current_state, block_reason=reason, current_step_index=0,
        )

    def escalate(
        self, unit: Unit, reason: str | None = None, actor: str = "", now: datetime | None = None
    ) -> TransitionResult:
        if unit.current_state != S.BLOCKED:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "ESCALATE")
        # prior_state is kept so RESOLVE still returns to where the unit was blocked.
        return self._move(unit, S.ESCALATED, TransitionAction.ESCALATE, actor=actor, now=now, reason=reason)

    def resolve(
        self,
        unit: Unit,
        records: Iterable[CompletedStepRecord] = (),
        actor: str = "",
        notes: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Return a blocked/escalated unit to the state it was blocked from.

        ``records`` are the completed steps of that restored stage; they
        determine the restored ``current_step_index``.
        """
        if unit.current_state not in RESOLVABLE or unit.prior_state is None:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "RESOLVE")
        restored = unit.prior_state
        index = next_step_index(self.steps_for(unit, restored), records)
        return self._move(
            unit, restored, TransitionAction.RESOLVE,
            actor=actor, now=now, notes=notes,
            prior_state=None, block_reason=None, current_step_index=index,
        )

    def dispose(
        self,
        unit: Unit,
        disposition: Disposition,
        reason: str,
        actor: str = "",
        now: datetime | None = None,
    ) -> TransitionResult:
        """Give up on a unit that escaped the main path."""
        if unit.current_state not in DISPOSABLE:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "DISPOSE")
        if not _reason_given(reason):
            raise MissingReasonError(unit.qlid, unit.current_state.value, "DISPOSE")
        return self._move(
            unit, S.FAILED_DISPOSITION, TransitionAction.DISPOSE,
            actor=actor, now=now, reason=reason,
            disposition=Disposition(disposition), current_step_index=0,
        )

    # ---- final test loop ----

    def pass_final_test(
        self,
        unit: Unit,
        records: Iterable[CompletedStepRecord] = (),
        actor: str = "",
        notes: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        if unit.current_state != S.FINAL_TEST_IN_PROGRESS:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "PASS")
        self._require_stage_complete(unit, records)
        return self._move(
            unit, S.FINAL_TEST_PASSED, TransitionAction.PASS,
            actor=actor, now=now, notes=notes, current_step_index=0,
        )

    def fail_final_test(
        self,
        unit: Unit,
        records: Iterable[CompletedStepRecord] = (),
        actor: str = "",
        reason: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Record a failed final test, consuming one attempt.

        Lands in FINAL_TEST_FAILED while attempts remain, FAILED_DISPOSITION
        otherwise.
        """
        if unit.current_state != S.FINAL_TEST_IN_PROGRESS:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "FAIL")
        self._require_stage_complete(unit, records)

        counted = unit
        if not attempts.exhausted(unit):
            counted, _ = attempts.increment(unit)
        target = S.FAILED_DISPOSITION if attempts.exhausted(counted) else S.FINAL_TEST_FAILED
        return self._move(
            counted, target, TransitionAction.FAIL,
            actor=actor, now=now, reason=reason,
            prior_state=S.FINAL_TEST_IN_PROGRESS, current_step_index=0,
        )

    def retry(
        self, unit: Unit, actor: str = "", notes: str | None = None, now: datetime | None = None
    ) -> TransitionResult:
        """Send a failed unit back to repair. Does not touch ``attempt_count``."""
        if unit.current_state != S.FINAL_TEST_FAILED:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "RETRY")
        if attempts.exhausted(unit):
            raise MaxAttemptsExceededError(
                unit.qlid, unit.current_state.value, unit.attempt_count, unit.max_attempts
            )
        return self._move(
            unit, S.REPAIR_IN_PROGRESS, TransitionAction.RETRY,
            actor=actor, now=now, notes=notes, prior_state=None, current_step_index=0,
        )

    def certify(
        self,
        unit: Unit,
        grade: FinalGrade,
        warranty_eligible: bool,
        actor: str = "",
        notes: str | None = None,
        now: datetime | None = None,
    ) -> TransitionResult:
        """Record the final grade and close the unit (CERTIFIED, then COMPLETE)."""
        if unit.current_state != S.FINAL_TEST_PASSED:
            raise InvalidStateError(unit.qlid, unit.current_state.value, "CERTIFY")
        now = now or utcnow()
        certified = self._move(
            unit, S.CERTIFIED, TransitionAction.CERTIFY,
            actor=actor, now=now, notes=notes,
            final_grade=FinalGrade(grade), warranty_eligible=warranty_eligible, current_step_index=0,
        )
        completed = self._move(certified.unit, S.COMPLETE, TransitionAction.ADVANCE, actor=actor, now=now)
        return TransitionResult(unit=completed.unit, events=certified.events + completed.events)
