"""Step descriptors (catalog data) and per-unit step completion records."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from refurbflow.models.unit import RefurbState, utcnow


class StepType(StrEnum):
    CHECKLIST = "CHECKLIST"
    INPUT = "INPUT"
    MEASUREMENT = "MEASUREMENT"
    PHOTO = "PHOTO"
    CONFIRMATION = "CONFIRMATION"


class InputField(BaseModel):
    """One named field of an INPUT/MEASUREMENT schema."""

    type: Literal["string", "number", "integer", "boolean"] = "string"
    title: str = ""
    enum: list[Any] | None = None
    minimum: float | None = None
    maximum: float | None = None


class InputSchema(BaseModel):
    """Object schema for INPUT/MEASUREMENT steps (JSON-schema subset)."""

    properties: dict[str, InputField] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class PhotoConfig(BaseModel):
    min_photos: int = 1
    max_photos: int = 10
    photo_types: list[str] = Field(default_factory=lambda: ["BEFORE", "AFTER", "DEFECT", "SERIAL"])


class StepDescriptor(BaseModel):
    """A single step/prompt of a stage, as defined by a category SOP."""

    model_config = {"frozen": True}

    code: str
    name: str
    type: StepType
    prompt: str
    help_text: str = ""
    required: bool = True
    order: int = 0

    # Type-specific configuration
    checklist_items: list[str] = Field(default_factory=list)
    input_schema: Optional[InputSchema] = None
    photo_config: Optional[PhotoConfig] = None


class PhotoRef(BaseModel):
    """Reference to a photo held by the external photo store."""

    url: str = Field(min_length=1)
    type: str = "DEFECT"


class StepPayload(BaseModel):
    """Data submitted when completing a step. Only the part matching the step type is read."""

    checklist_results: dict[str, bool] = Field(default_factory=dict)
    input_values: dict[str, Any] = Field(default_factory=dict)
    measurements: dict[str, Any] = Field(default_factory=dict)
    confirmed: bool = False
    photos: list[PhotoRef] = Field(default_factory=list)
    notes: str = ""


class CompletedStepRecord(BaseModel):
    """Stored submission for one step of one stage cycle of a unit."""

    qlid: str
    state: RefurbState
    attempt: int = 0
    step_code: str
    payload: StepPayload = Field(default_factory=StepPayload)
    actor_id: str = ""
    completed_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, str, int, str]:
        return (self.qlid, self.state.value, self.attempt, self.step_code)
