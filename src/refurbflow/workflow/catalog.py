"""Step Definition Catalog: per-stage ordered step descriptors for each category."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from pydantic import BaseModel

from refurbflow.models.steps import InputSchema, StepDescriptor
from refurbflow.models.unit import ProductCategory, RefurbState
from refurbflow.workflow.sops import SOPS, sop_name_for


class SOPOverride(BaseModel):
    """Site-specific adjustment of one catalog step."""

    category: ProductCategory
    stage: RefurbState
    step_code: str
    is_applicable: bool = True  # False removes the step
    override_prompt: Optional[str] = None
    override_help_text: Optional[str] = None
    override_checklist: Optional[list[str]] = None
    override_input_schema: Optional[InputSchema] = None


def build_descriptors(raw_steps: Iterable[dict[str, Any]]) -> tuple[StepDescriptor, ...]:
    """Validate raw step dicts and sort them by ``order``."""
    steps = [StepDescriptor.model_validate(s) for s in raw_steps]
    return tuple(sorted(steps, key=lambda s: s.order))


def apply_overrides(
    steps: tuple[StepDescriptor, ...], overrides: Iterable[SOPOverride]
) -> tuple[StepDescriptor, ...]:
    by_code = {o.step_code: o for o in overrides}
    if not by_code:
        return steps
    out: list[StepDescriptor] = []
    for step in steps:
        ov = by_code.get(step.code)
        if ov is None:
            out.append(step)
            continue
        if not ov.is_applicable:
            continue
        update: dict[str, Any] = {}
        if ov.override_prompt is not None:
            update["prompt"] = ov.override_prompt
        if ov.override_help_text is not None:
            update["help_text"] = ov.override_help_text
        if ov.override_checklist is not None:
            update["checklist_items"] = list(ov.override_checklist)
        if ov.override_input_schema is not None:
            update["input_schema"] = ov.override_input_schema
        out.append(step.model_copy(update=update))
    return tuple(out)


class StaticStepCatalog:
    """In-process IStepCatalog built once from SOP seed data."""

    def __init__(
        self,
        sops: dict[str, dict[str, list[dict[str, Any]]]] | None = None,
        overrides: Iterable[SOPOverride] = (),
    ) -> None:
        sops = SOPS if sops is None else sops
        self._sops: dict[str, dict[RefurbState, tuple[StepDescriptor, ...]]] = {
            name: {RefurbState(stage): build_descriptors(raw) for stage, raw in stages.items()}
            for name, stages in sops.items()
        }
        self._overrides: dict[tuple[ProductCategory, RefurbState], list[SOPOverride]] = {}
        for ov in overrides:
            self._overrides.setdefault((ov.category, ov.stage), []).append(ov)

    def get_steps_for_stage(
        self, stage: RefurbState, category: ProductCategory = ProductCategory.OTHER
    ) -> tuple[StepDescriptor, ...]:
        sop = self._sops.get(sop_name_for(category.value)) or self._sops.get("GENERIC", {})
        steps = sop.get(stage, ())
        return apply_overrides(steps, self._overrides.get((category, stage), ()))
