"""WorkflowService: caller-facing operations over the engine and its collaborators.

Each mutating call runs under the unit's lock as load -> pure engine call ->
versioned save -> event emission. A version conflict reloads the unit and
re-applies the operation, up to ``workflow.conflict_retries`` times.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError

from refurbflow.core.config import AppSettings
from refurbflow.core.exceptions import ConflictError, InvalidStateError, ValidationFailedError
from refurbflow.core.protocols import IStepCatalog, ITransitionLog, IUnitLock, IUnitStore
from refurbflow.models.events import TransitionAction, TransitionData, TransitionEvent, TransitionResult
from refurbflow.models.prompt import Prompt, UnitStats
from refurbflow.models.steps import CompletedStepRecord, StepPayload
from refurbflow.models.unit import (
    Disposition,
    FinalGrade,
    JobPriority,
    ProductCategory,
    RefurbState,
    Unit,
)
from refurbflow.persistence import Persistence
from refurbflow.workflow.prompt_builder import build_prompt
from refurbflow.workflow.stats import compute_stats
from refurbflow.workflow.step_executor import submit_step
from refurbflow.workflow.transitions import StageTransitionEngine

logger = logging.getLogger(__name__)

# Operation applied to a freshly loaded unit; may also return a step record to persist.
_Operation = Callable[[Unit], tuple[TransitionResult, Optional[CompletedStepRecord]]]

E = TypeVar("E", bound=StrEnum)


def field_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into ``"field.path: message"`` strings."""
    return [
        f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
        for err in exc.errors()
    ]


def _coerce(enum_cls: type[E], value: Any, *, qlid: str, operation: str, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationFailedError(
            qlid, operation, [f"{field}: {value!r} not one of {[m.value for m in enum_cls]}"]
        ) from exc


def _optional(enum_cls: type[E], value: Any, *, operation: str, field: str) -> E | None:
    return None if value is None else _coerce(enum_cls, value, qlid="", operation=operation, field=field)


class WorkflowService:
    """Entry point for the HTTP/CLI layer."""

    def __init__(
        self,
        *,
        unit_store: IUnitStore,
        catalog: IStepCatalog,
        transition_log: ITransitionLog,
        lock: IUnitLock,
        settings: AppSettings | None = None,
    ) -> None:
        self._settings = settings or AppSettings()
        self._units = unit_store
        self._catalog = catalog
        self._log = transition_log
        self._lock = lock
        self.engine = StageTransitionEngine(catalog)

    @classmethod
    def from_persistence(cls, persistence: Persistence, settings: AppSettings | None = None) -> "WorkflowService":
        return cls(
            unit_store=persistence.unit_store,
            catalog=persistence.catalog,
            transition_log=persistence.transition_log,
            lock=persistence.lock,
            settings=settings,
        )

    # ---- internals ----

    def _records(self, unit: Unit, state: RefurbState | None = None) -> list[CompletedStepRecord]:
        return self._units.load_completed_steps(unit.qlid, state or unit.current_state, unit.attempt_count)

    def _emit(self, events: list[TransitionEvent]) -> None:
        for event in events:
            self._log.record(event)

    def _mutate(self, qlid: str, operation: _Operation) -> Unit:
        retries = self._settings.workflow.conflict_retries
        with self._lock.hold(qlid):
            for attempt in range(retries + 1):
                unit = self._units.load_unit(qlid)
                result, record = operation(unit)
                try:
                    saved = self._units.save_unit(result.unit, expected_version=unit.version)
                except ConflictError:
                    if attempt >= retries:
                        raise
                    logger.warning(
                        "Version conflict on unit %s (attempt %d/%d), reloading",
                        qlid, attempt + 1, retries + 1,
                    )
                    continue
                # The stored current_step_index only caches progress: prompts and
                # stage checks recompute it from the records, so a failed record
                # write after the unit save leaves the step pending, not skipped.
                if record is not None:
                    self._units.save_completed_step(record)
                self._emit(result.events)
                return saved
        raise ConflictError(qlid)  # unreachable: loop returns or raises

    # ---- queries ----

    def get_unit(self, qlid: str) -> Unit:
        return self._units.load_unit(qlid)

    def get_prompt(self, qlid: str) -> Prompt:
        unit = self._units.load_unit(qlid)
        return build_prompt(unit, self.engine.steps_for(unit), self._records(unit))

    def history(self, qlid: str) -> list[TransitionEvent]:
        self._units.load_unit(qlid)
        return self._log.list_for_unit(qlid)

    def list_units(
        self,
        *,
        state: RefurbState | str | None = None,
        technician_id: str | None = None,
        category: ProductCategory | str | None = None,
        priority: JobPriority | str | None = None,
    ) -> list[Unit]:
        """Job queue: units matching every given filter, newest first."""
        return self._units.list_units(
            state=_optional(RefurbState, state, operation="LIST", field="state"),
            technician_id=technician_id,
            category=_optional(ProductCategory, category, operation="LIST", field="category"),
            priority=_optional(JobPriority, priority, operation="LIST", field="priority"),
        )

    def stats(self, now: datetime | None = None) -> UnitStats:
        return compute_stats(self._units.list_units(), now)

    # ---- commands ----

    def create_unit(
        self,
        qlid: str,
        pallet_id: str,
        category: ProductCategory | str = ProductCategory.OTHER,
        *,
        priority: JobPriority | str | None = None,
        max_attempts: int | None = None,
        manufacturer: str | None = None,
        model: str | None = None,
        actor: str = "",
    ) -> Unit:
        """Register a newly received unit in QUEUED."""
        wf = self._settings.workflow
        try:
            unit = Unit(
                qlid=qlid,
                pallet_id=pallet_id,
                category=_coerce(ProductCategory, category, qlid=qlid, operation="CREATE", field="category"),
                priority=_coerce(
                    JobPriority, priority or wf.default_priority, qlid=qlid, operation="CREATE", field="priority"
                ),
                max_attempts=wf.default_max_attempts if max_attempts is None else max_attempts,
                manufacturer=manufacturer,
                model=model,
            )
        except ValidationError as exc:
            raise ValidationFailedError(qlid, "CREATE", field_errors(exc)) from exc
        result = self.engine.create(unit, actor=actor)
        with self._lock.hold(qlid):
            saved = self._units.save_unit(result.unit, expected_version=None)
            self._emit(result.events)
        logger.info("Created unit %s on pallet %s (%s)", qlid, pallet_id, saved.category.value)
        return saved

    def complete_step(self, qlid: str, step_code: str, payload: StepPayload | dict, actor: str = "") -> Unit:
        """Validate and store one step submission for the unit's current stage."""
        if not isinstance(payload, StepPayload):
            try:
                payload = StepPayload.model_validate(payload)
            except ValidationError as exc:
                raise ValidationFailedError(qlid, step_code, field_errors(exc)) from exc

        def operation(unit: Unit) -> tuple[TransitionResult, Optional[CompletedStepRecord]]:
            submission = submit_step(
                unit, self.engine.steps_for(unit), self._records(unit), step_code, payload, actor
            )
            return TransitionResult(unit=submission.unit), submission.record

        return self._mutate(qlid, operation)

    def transition(
        self,
        qlid: str,
        kind: TransitionAction | str,
        actor: str = "",
        data: TransitionData | None = None,
    ) -> Unit:
        """Apply ADVANCE, BLOCK, RESOLVE, ESCALATE, RETRY, PASS, FAIL or DISPOSE."""
        kind = _coerce(TransitionAction, kind, qlid=qlid, operation="TRANSITION", field="kind")
        data = data or TransitionData()
        engine = self.engine

        def operation(unit: Unit) -> tuple[TransitionResult, Optional[CompletedStepRecord]]:
            if kind == TransitionAction.ADVANCE:
                return engine.advance(unit, self._records(unit), actor, notes=data.notes), None
            if kind == TransitionAction.BLOCK:
                return engine.block(unit, data.reason or "", actor), None
            if kind == TransitionAction.RESOLVE:
                restore_to = unit.prior_state or unit.current_state
                return engine.resolve(unit, self._records(unit, restore_to), actor, notes=data.notes), None
            if kind == TransitionAction.ESCALATE:
                return engine.escalate(unit, data.reason, actor), None
            if kind == TransitionAction.RETRY:
                return engine.retry(unit, actor, notes=data.notes), None
            if kind == TransitionAction.PASS:
                return engine.pass_final_test(unit, self._records(unit), actor, notes=data.notes), None
            if kind == TransitionAction.FAIL:
                return engine.fail_final_test(unit, self._records(unit), actor, reason=data.reason), None
            if kind == TransitionAction.DISPOSE:
                if data.disposition is None:
                    raise ValidationFailedError(
                        unit.qlid, "DISPOSE", ["disposition: required"], state=unit.current_state.value
                    )
                return engine.dispose(unit, data.disposition, data.reason or "", actor), None
            raise InvalidStateError(unit.qlid, unit.current_state.value, kind.value)

        return self._mutate(qlid, operation)

    def certify(
        self,
        qlid: str,
        grade: FinalGrade | str,
        warranty_eligible: bool,
        actor: str = "",
        notes: str | None = None,
    ) -> Unit:
        final_grade = _coerce(FinalGrade, grade, qlid=qlid, operation="CERTIFY", field="grade")
        return self._mutate(
            qlid,
            lambda unit: (self.engine.certify(unit, final_grade, warranty_eligible, actor, notes=notes), None),
        )

    def assign(self, qlid: str, technician_id: str, actor: str = "") -> Unit:
        return self._mutate(qlid, lambda unit: (self.engine.assign(unit, technician_id, actor), None))

    def dispose(self, qlid: str, disposition: Disposition | str, reason: str, actor: str = "") -> Unit:
        return self.transition(
            qlid,
            TransitionAction.DISPOSE,
            actor,
            TransitionData(
                reason=reason,
                disposition=_coerce(Disposition, disposition, qlid=qlid, operation="DISPOSE", field="disposition"),
            ),
        )
