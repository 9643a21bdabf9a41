"""Step Executor: validates step submissions and tracks stage completeness.

Everything here is a pure function of the unit snapshot, the stage's step
descriptors and the stage's completed-step records. Persistence is the
caller's job.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Iterable, NamedTuple, Sequence

from refurbflow.core.exceptions import UnknownStepError, ValidationFailedError
from refurbflow.models.steps import (
    CompletedStepRecord,
    InputField,
    StepDescriptor,
    StepPayload,
    StepType,
)
from refurbflow.models.unit import Unit, utcnow

logger = logging.getLogger(__name__)


class StepSubmission(NamedTuple):
    unit: Unit
    record: CompletedStepRecord


def _index_records(records: Iterable[CompletedStepRecord]) -> dict[str, CompletedStepRecord]:
    return {r.step_code: r for r in records}


# ---------------------------------------------------------------------------
# Shape validation
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _check_field(name: str, spec: InputField, value: Any) -> list[str]:
    if spec.type == "boolean":
        if not isinstance(value, bool):
            return [f"{name}: expected boolean"]
    elif spec.type in ("number", "integer"):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return [f"{name}: expected {spec.type}"]
        if isinstance(value, float) and not math.isfinite(value):
            return [f"{name}: {value} is not a finite number"]
        if spec.type == "integer" and isinstance(value, float) and not value.is_integer():
            return [f"{name}: expected integer"]
        if spec.minimum is not None and value < spec.minimum:
            return [f"{name}: {value} is below minimum {spec.minimum:g}"]
        if spec.maximum is not None and value > spec.maximum:
            return [f"{name}: {value} is above maximum {spec.maximum:g}"]
    elif not isinstance(value, str):
        return [f"{name}: expected string"]

    if spec.enum is not None and value not in spec.enum:
        return [f"{name}: {value!r} not one of {spec.enum}"]
    return []


def _schema_values(step: StepDescriptor, payload: StepPayload) -> dict[str, Any]:
    if step.type == StepType.MEASUREMENT:
        return payload.measurements or payload.input_values
    return payload.input_values


def payload_errors(step: StepDescriptor, payload: StepPayload) -> list[str]:
    """Return shape errors of ``payload`` for ``step``; empty when acceptable.

    A partial checklist, an unconfirmed confirmation or a photo step with no
    photos is acceptable: it is stored but does not satisfy the step.
    """
    errors: list[str] = []

    if step.type == StepType.CHECKLIST:
        unknown = sorted(set(payload.checklist_results) - set(step.checklist_items))
        if unknown:
            errors.append(f"unknown checklist items: {unknown}")

    elif step.type in (StepType.INPUT, StepType.MEASUREMENT):
        schema = step.input_schema
        if schema is None:
            return errors
        values = _schema_values(step, payload)
        for name in schema.required:
            if _is_blank(values.get(name)):
                errors.append(f"{name}: required")
        for name, value in values.items():
            spec = schema.properties.get(name)
            if spec is None or _is_blank(value):
                continue
            errors.extend(_check_field(name, spec, value))

    elif step.type == StepType.PHOTO:
        config = step.photo_config
        if config is not None:
            if len(payload.photos) > config.max_photos:
                errors.append(f"at most {config.max_photos} photos allowed, got {len(payload.photos)}")
            bad = sorted({p.type for p in payload.photos} - set(config.photo_types))
            if bad:
                errors.append(f"photo types not allowed: {bad}")

    return errors


def is_step_satisfied(step: StepDescriptor, record: CompletedStepRecord | None) -> bool:
    """Type-specific completeness rule for a stored submission."""
    if record is None:
        return False
    payload = record.payload

    if step.type == StepType.CHECKLIST:
        return all(payload.checklist_results.get(item, False) for item in step.checklist_items)
    if step.type in (StepType.INPUT, StepType.MEASUREMENT):
        if step.input_schema is None:
            return True
        values = _schema_values(step, payload)
        return not any(_is_blank(values.get(name)) for name in step.input_schema.required)
    if step.type == StepType.CONFIRMATION:
        return payload.confirmed
    if step.type == StepType.PHOTO:
        minimum = step.photo_config.min_photos if step.photo_config else 1
        return len(payload.photos) >= max(1, minimum)
    return False


# ---------------------------------------------------------------------------
# Stage completeness
# ---------------------------------------------------------------------------

def missing_required_steps(
    steps: Sequence[StepDescriptor], records: Iterable[CompletedStepRecord]
) -> list[str]:
    by_code = _index_records(records)
    return [s.code for s in steps if s.required and not is_step_satisfied(s, by_code.get(s.code))]


def is_stage_complete(steps: Sequence[StepDescriptor], records: Iterable[CompletedStepRecord]) -> bool:
    return not missing_required_steps(steps, records)


def next_step_index(steps: Sequence[StepDescriptor], records: Iterable[CompletedStepRecord]) -> int:
    """Index of the first unsatisfied required step, or ``len(steps)`` if none remain."""
    by_code = _index_records(records)
    for i, step in enumerate(steps):
        if step.required and not is_step_satisfied(step, by_code.get(step.code)):
            return i
    return len(steps)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def find_step(steps: Sequence[StepDescriptor], step_code: str) -> StepDescriptor | None:
    for step in steps:
        if step.code == step_code:
            return step
    return None


def submit_step(
    unit: Unit,
    steps: Sequence[StepDescriptor],
    records: Iterable[CompletedStepRecord],
    step_code: str,
    payload: StepPayload,
    actor_id: str = "",
    now: datetime | None = None,
) -> StepSubmission:
    """Validate ``payload`` and produce the record plus the updated unit.

    ``steps`` and ``records`` must belong to the unit's current stage and
    attempt. Re-submitting a code replaces its earlier record.
    """
    step = find_step(steps, step_code)
    if step is None:
        raise UnknownStepError(unit.qlid, unit.current_state.value, step_code)

    errors = payload_errors(step, payload)
    if errors:
        raise ValidationFailedError(unit.qlid, step_code, errors, state=unit.current_state.value)

    now = now or utcnow()
    record = CompletedStepRecord(
        qlid=unit.qlid,
        state=unit.current_state,
        attempt=unit.attempt_count,
        step_code=step_code,
        payload=payload,
        actor_id=actor_id,
        completed_at=now,
    )
    by_code = _index_records(records)
    by_code[step_code] = record
    index = next_step_index(steps, by_code.values())

    logger.debug(
        "Unit %s step %s submitted (satisfied=%s, next index %d/%d)",
        unit.qlid, step_code, is_step_satisfied(step, record), index, len(steps),
    )
    return StepSubmission(
        unit=unit.model_copy(update={"current_step_index": index, "updated_at": now}),
        record=record,
    )
