"""Protocol interfaces for the workflow engine's collaborators.

The engine only talks to these Protocols: structural typing, no inheritance
required, easy to test with isinstance().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ContextManager, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from refurbflow.models.events import TransitionEvent
    from refurbflow.models.steps import CompletedStepRecord, StepDescriptor
    from refurbflow.models.unit import JobPriority, ProductCategory, RefurbState, Unit


# ---------------------------------------------------------------------------
# Persistence: Units and step completions
# ---------------------------------------------------------------------------

@runtime_checkable
class IUnitStore(Protocol):
    """Durable storage for units and their completed-step records."""

    def load_unit(self, qlid: str) -> Unit: ...

    def save_unit(self, unit: Unit, expected_version: int | None) -> Unit: ...

    def load_completed_steps(
        self, qlid: str, state: RefurbState, attempt: int
    ) -> list[CompletedStepRecord]: ...

    def save_completed_step(self, record: CompletedStepRecord) -> None: ...

    def list_units(
        self,
        state: RefurbState | None = None,
        technician_id: str | None = None,
        category: ProductCategory | None = None,
        priority: JobPriority | None = None,
    ) -> list[Unit]:
        """Units matching every given filter, newest ``created_at`` first."""
        ...


# ---------------------------------------------------------------------------
# Step Definition Catalog
# ---------------------------------------------------------------------------

@runtime_checkable
class IStepCatalog(Protocol):
    """Immutable per-stage step definitions."""

    def get_steps_for_stage(
        self, stage: RefurbState, category: ProductCategory
    ) -> Sequence[StepDescriptor]: ...


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------

@runtime_checkable
class ITransitionLog(Protocol):
    """Receives every transition event for durable audit history."""

    def record(self, event: TransitionEvent) -> None: ...

    def list_for_unit(self, qlid: str) -> list[TransitionEvent]: ...


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

@runtime_checkable
class IUnitLock(Protocol):
    """At-most-one-writer-at-a-time guard for a single unit."""

    def hold(self, qlid: str) -> ContextManager[None]: ...
