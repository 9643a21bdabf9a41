"""Computed "what to do next" view of a unit. Never persisted."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from refurbflow.models.steps import CompletedStepRecord, StepDescriptor
from refurbflow.models.unit import RefurbState, Unit


class Progress(BaseModel):
    states_completed: int
    total_states: int
    overall_percent: int


class Prompt(BaseModel):
    unit: Unit
    state: RefurbState
    state_name: str
    message: str = ""

    total_steps: int = 0
    required_steps: int = 0
    current_step_index: int = 0
    current_step: Optional[StepDescriptor] = None
    completed_steps: list[CompletedStepRecord] = Field(default_factory=list)

    progress: Progress
    attempts_remaining: int = 0

    can_advance: bool = False
    can_block: bool = False
    can_escalate: bool = False
    can_resolve: bool = False
    can_retry: bool = False
    can_certify: bool = False


class UnitStats(BaseModel):
    """Queue-wide counts for the supervisor dashboard."""

    total: int = 0
    by_state: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    completed_today: int = 0
    avg_cycle_time_hours: float = 0.0
