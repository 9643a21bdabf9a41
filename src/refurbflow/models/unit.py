"""Unit (refurbishment job) model and workflow enums."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefurbState(StrEnum):
    # Main path
    QUEUED = "QUEUED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"  # security prep
    SECURITY_PREP_COMPLETE = "SECURITY_PREP_COMPLETE"
    DIAGNOSED = "DIAGNOSED"
    REPAIR_IN_PROGRESS = "REPAIR_IN_PROGRESS"
    REPAIR_COMPLETE = "REPAIR_COMPLETE"
    FINAL_TEST_IN_PROGRESS = "FINAL_TEST_IN_PROGRESS"
    FINAL_TEST_PASSED = "FINAL_TEST_PASSED"
    CERTIFIED = "CERTIFIED"
    COMPLETE = "COMPLETE"
    # Escape routes
    BLOCKED = "BLOCKED"
    ESCALATED = "ESCALATED"
    FINAL_TEST_FAILED = "FINAL_TEST_FAILED"
    FAILED_DISPOSITION = "FAILED_DISPOSITION"


class StateKind(StrEnum):
    NORMAL = "NORMAL"
    GATE = "GATE"  # waits for an explicit decision (certification)
    ESCAPE = "ESCAPE"
    TERMINAL = "TERMINAL"


class ProductCategory(StrEnum):
    PHONE = "PHONE"
    TABLET = "TABLET"
    LAPTOP = "LAPTOP"
    DESKTOP = "DESKTOP"
    TV = "TV"
    MONITOR = "MONITOR"
    AUDIO = "AUDIO"
    APPLIANCE_SMALL = "APPLIANCE_SMALL"
    APPLIANCE_LARGE = "APPLIANCE_LARGE"
    ICE_MAKER = "ICE_MAKER"
    VACUUM = "VACUUM"
    GAMING = "GAMING"
    WEARABLE = "WEARABLE"
    OTHER = "OTHER"


class JobPriority(StrEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class FinalGrade(StrEnum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"
    SALVAGE = "SALVAGE"


class Disposition(StrEnum):
    LISTING = "LISTING"
    SALVAGE = "SALVAGE"
    RECYCLE = "RECYCLE"


class Unit(BaseModel):
    """One physical item moving through the refurbishment workflow.

    Units are treated as immutable snapshots: engine operations return a new
    ``Unit`` via ``model_copy`` and never modify the one passed in.
    """

    # --- Identity ---
    qlid: str = Field(min_length=1)  # P1BBY-QLID000000001
    pallet_id: str = Field(min_length=1)  # P1BBY
    category: ProductCategory = ProductCategory.OTHER
    manufacturer: Optional[str] = None
    model: Optional[str] = None

    # --- Workflow position ---
    current_state: RefurbState = RefurbState.QUEUED
    current_step_index: int = Field(default=0, ge=0)
    prior_state: Optional[RefurbState] = None  # state the unit escaped from
    block_reason: Optional[str] = None

    # --- Repair/test loop ---
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=2, ge=0)

    # --- Assignment & outcome ---
    priority: JobPriority = JobPriority.NORMAL
    assigned_technician_id: Optional[str] = None
    final_grade: Optional[FinalGrade] = None
    warranty_eligible: Optional[bool] = None
    disposition: Optional[Disposition] = None

    # --- Timestamps ---
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # --- Optimistic concurrency ---
    version: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _attempts_within_limit(self) -> "Unit":
        if self.attempt_count > self.max_attempts:
            raise ValueError(
                f"attempt_count ({self.attempt_count}) exceeds max_attempts ({self.max_attempts})"
            )
        return self
