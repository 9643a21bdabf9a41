"""Job Prompt Builder: read-only "what to show or ask next" projection."""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from refurbflow.models.prompt import Progress, Prompt
from refurbflow.models.steps import CompletedStepRecord, StepDescriptor
from refurbflow.models.unit import RefurbState, StateKind, Unit
from refurbflow.workflow import attempts
from refurbflow.workflow.states import (
    ADVANCE_TARGET,
    BLOCKABLE,
    MAIN_PATH,
    RESOLVABLE,
    display_name,
    is_main_path,
    kind_of,
)
from refurbflow.workflow.step_executor import is_step_satisfied, next_step_index

S = RefurbState


def progress_anchor(unit: Unit) -> RefurbState:
    """Main-path state used for progress display; escape states show where they left off."""
    if is_main_path(unit.current_state):
        return unit.current_state
    if unit.prior_state is not None and is_main_path(unit.prior_state):
        return unit.prior_state
    if unit.current_state in (S.FINAL_TEST_FAILED, S.FAILED_DISPOSITION):
        return S.FINAL_TEST_IN_PROGRESS
    return S.QUEUED


def compute_progress(unit: Unit) -> Progress:
    ordinal = MAIN_PATH.index(progress_anchor(unit))
    total = len(MAIN_PATH)
    percent = math.floor(ordinal * 100 / (total - 1) + 0.5)
    return Progress(states_completed=ordinal, total_states=total, overall_percent=percent)


def _escape_message(unit: Unit) -> str:
    state = unit.current_state
    if state == S.COMPLETE:
        grade = unit.final_grade.value if unit.final_grade else "-"
        return f"Refurbishment complete. Final grade {grade}."
    if state == S.FINAL_TEST_PASSED:
        return "Final test passed. Certify the unit with a final grade."
    if state == S.BLOCKED:
        return f"Blocked: {unit.block_reason or 'no reason recorded'}. Resolve or escalate."
    if state == S.ESCALATED:
        return f"Escalated: {unit.block_reason or 'no reason recorded'}. Awaiting supervisor resolution."
    if state == S.FINAL_TEST_FAILED:
        left = attempts.remaining(unit)
        return f"Final test failed. {left} attempt(s) remaining. Retry repair or dispose."
    if state == S.FAILED_DISPOSITION:
        disposition = unit.disposition.value if unit.disposition else "pending"
        return f"Failed. Disposition: {disposition}."
    return display_name(state)


def build_prompt(
    unit: Unit,
    steps: Sequence[StepDescriptor],
    records: Iterable[CompletedStepRecord] = (),
) -> Prompt:
    """Compute the prompt for ``unit``.

    ``steps`` and ``records`` are the current stage's descriptors and the
    records stored for it in the unit's current attempt.
    """
    state = unit.current_state
    steps = sorted(steps, key=lambda s: s.order)
    records = sorted(records, key=lambda r: r.completed_at)
    by_code = {r.step_code: r for r in records}
    kind = kind_of(state)

    common = dict(
        unit=unit,
        state=state,
        state_name=display_name(state),
        total_steps=len(steps),
        required_steps=sum(1 for s in steps if s.required),
        completed_steps=[r for r in records if r.step_code in {s.code for s in steps}],
        progress=compute_progress(unit),
        attempts_remaining=max(attempts.remaining(unit), 0),
        can_block=state in BLOCKABLE,
        can_escalate=state == S.BLOCKED,
        can_resolve=state in RESOLVABLE and unit.prior_state is not None,
        can_retry=state == S.FINAL_TEST_FAILED and not attempts.exhausted(unit),
        can_certify=state == S.FINAL_TEST_PASSED,
    )

    if kind in (StateKind.ESCAPE, StateKind.TERMINAL, StateKind.GATE):
        return Prompt(
            **common,
            message=_escape_message(unit),
            current_step_index=len(steps),
            current_step=None,
            can_advance=False,
        )

    pending = [s for s in steps if s.required and not is_step_satisfied(s, by_code.get(s.code))]
    current = pending[0] if pending else None
    target = ADVANCE_TARGET[state]
    if current is not None:
        message = current.prompt
    elif target is not None:
        message = f"All steps complete. Advance to {display_name(target)}."
    else:
        message = display_name(state)

    return Prompt(
        **common,
        message=message,
        current_step_index=next_step_index(steps, records),
        current_step=current,
        can_advance=current is None and target is not None,
    )
