"""Shared test doubles: memory backends plus payload builders."""

from __future__ import annotations

from typing import Any

from refurbflow.models.steps import PhotoRef, StepDescriptor, StepPayload, StepType
from refurbflow.persistence.memory_backend import LocalUnitLock, MemoryTransitionLog, MemoryUnitStore


def _field_value(spec: Any) -> Any:
    if spec.enum:
        return spec.enum[0]
    if spec.type == "boolean":
        return True
    if spec.type in ("number", "integer"):
        value = spec.minimum if spec.minimum is not None else (spec.maximum if spec.maximum is not None else 1)
        return int(value) if spec.type == "integer" else value
    return "ok"


def satisfying_payload(step: StepDescriptor, notes: str = "") -> StepPayload:
    """Smallest payload that fully satisfies ``step``."""
    if step.type == StepType.CHECKLIST:
        return StepPayload(checklist_results={item: True for item in step.checklist_items}, notes=notes)
    if step.type in (StepType.INPUT, StepType.MEASUREMENT):
        schema = step.input_schema
        values = {} if schema is None else {name: _field_value(schema.properties[name]) for name in schema.required}
        if step.type == StepType.MEASUREMENT:
            return StepPayload(measurements=values, notes=notes)
        return StepPayload(input_values=values, notes=notes)
    if step.type == StepType.CONFIRMATION:
        return StepPayload(confirmed=True, notes=notes)
    config = step.photo_config
    count = max(1, config.min_photos) if config else 1
    photo_type = config.photo_types[0] if config else "DEFECT"
    return StepPayload(
        photos=[PhotoRef(url=f"s3://photos/{step.code}/{i}.jpg", type=photo_type) for i in range(count)],
        notes=notes,
    )


__all__ = ["LocalUnitLock", "MemoryTransitionLog", "MemoryUnitStore", "satisfying_payload"]
