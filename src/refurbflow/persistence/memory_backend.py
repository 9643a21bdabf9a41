"""In-memory backends for unit tests and single-process use: dict-backed fakes."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from refurbflow.core.exceptions import ConflictError, UnitNotFoundError
from refurbflow.models.events import TransitionEvent
from refurbflow.models.steps import CompletedStepRecord
from refurbflow.models.unit import JobPriority, ProductCategory, RefurbState, Unit


class MemoryUnitStore:
    """Dict-backed IUnitStore with the same version check as the DynamoDB store."""

    def __init__(self) -> None:
        self._units: dict[str, Unit] = {}
        self._steps: dict[tuple[str, str, int, str], CompletedStepRecord] = {}
        self._guard = threading.Lock()

    def load_unit(self, qlid: str) -> Unit:
        with self._guard:
            unit = self._units.get(qlid)
        if unit is None:
            raise UnitNotFoundError(qlid)
        return unit

    def save_unit(self, unit: Unit, expected_version: int | None) -> Unit:
        with self._guard:
            current = self._units.get(unit.qlid)
            if expected_version is None:
                if current is not None:
                    raise ConflictError(unit.qlid, f"Unit {unit.qlid} already exists")
            elif current is None or current.version != expected_version:
                raise ConflictError(
                    unit.qlid,
                    context={
                        "expected_version": expected_version,
                        "stored_version": None if current is None else current.version,
                    },
                )
            saved = unit.model_copy(update={"version": (expected_version or 0) + 1})
            self._units[unit.qlid] = saved
            return saved

    def load_completed_steps(self, qlid: str, state: RefurbState, attempt: int) -> list[CompletedStepRecord]:
        with self._guard:
            records = [
                r for (q, s, a, _), r in self._steps.items()
                if q == qlid and s == state.value and a == attempt
            ]
        return sorted(records, key=lambda r: r.completed_at)

    def save_completed_step(self, record: CompletedStepRecord) -> None:
        with self._guard:
            self._steps[record.key] = record

    def list_units(
        self,
        state: RefurbState | None = None,
        technician_id: str | None = None,
        category: ProductCategory | None = None,
        priority: JobPriority | None = None,
    ) -> list[Unit]:
        with self._guard:
            units = list(self._units.values())
        matches = [
            u for u in units
            if (state is None or u.current_state == state)
            and (technician_id is None or u.assigned_technician_id == technician_id)
            and (category is None or u.category == category)
            and (priority is None or u.priority == priority)
        ]
        return sorted(matches, key=lambda u: u.created_at, reverse=True)


class MemoryTransitionLog:
    """List-backed ITransitionLog."""

    def __init__(self) -> None:
        self._events: list[TransitionEvent] = []
        self._guard = threading.Lock()

    def record(self, event: TransitionEvent) -> None:
        with self._guard:
            self._events.append(event)

    def list_for_unit(self, qlid: str) -> list[TransitionEvent]:
        with self._guard:
            return [e for e in self._events if e.qlid == qlid]


class _LockSlot:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0  # holding or waiting


class LocalUnitLock:
    """Per-unit threading locks; enough when one process owns the store.

    A unit's lock is dropped once nobody holds or waits for it, so the table
    only tracks units currently being written.
    """

    def __init__(self) -> None:
        self._locks: dict[str, _LockSlot] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, qlid: str) -> Iterator[None]:
        with self._guard:
            slot = self._locks.setdefault(qlid, _LockSlot())
            slot.holders += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._guard:
                slot.holders -= 1
                if slot.holders == 0:
                    del self._locks[qlid]
