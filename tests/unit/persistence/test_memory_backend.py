"""Tests for the in-memory backends."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from refurbflow.core.exceptions import ConflictError, UnitNotFoundError
from refurbflow.core.protocols import ITransitionLog, IUnitLock, IUnitStore
from refurbflow.models.events import TransitionAction, TransitionEvent
from refurbflow.models.steps import CompletedStepRecord, StepPayload
from refurbflow.models.unit import ProductCategory, RefurbState, Unit
from tests.fakes import LocalUnitLock, MemoryTransitionLog, MemoryUnitStore

QLID = "P1BBY-QLID000000001"


def test_backends_satisfy_protocols():
    assert isinstance(MemoryUnitStore(), IUnitStore)
    assert isinstance(MemoryTransitionLog(), ITransitionLog)
    assert isinstance(LocalUnitLock(), IUnitLock)


class TestMemoryUnitStore:
    def test_version_increments(self, unit_store):
        created = unit_store.save_unit(Unit(qlid=QLID, pallet_id="P1BBY"), None)
        assert created.version == 1
        assert unit_store.save_unit(created, 1).version == 2

    def test_stale_write_conflicts(self, unit_store):
        created = unit_store.save_unit(Unit(qlid=QLID, pallet_id="P1BBY"), None)
        unit_store.save_unit(created, 1)
        with pytest.raises(ConflictError) as exc_info:
            unit_store.save_unit(created, 1)
        assert exc_info.value.context == {"expected_version": 1, "stored_version": 2}

    def test_update_of_missing_unit_conflicts(self, unit_store):
        with pytest.raises(ConflictError):
            unit_store.save_unit(Unit(qlid=QLID, pallet_id="P1BBY"), 3)

    def test_load_missing(self, unit_store):
        with pytest.raises(UnitNotFoundError):
            unit_store.load_unit(QLID)

    def test_steps_scoped_by_attempt(self, unit_store):
        for attempt in (0, 1):
            unit_store.save_completed_step(CompletedStepRecord(
                qlid=QLID, state=RefurbState.REPAIR_IN_PROGRESS, attempt=attempt,
                step_code="GENERIC_REPAIR_DONE", payload=StepPayload(confirmed=bool(attempt)),
            ))
        [second] = unit_store.load_completed_steps(QLID, RefurbState.REPAIR_IN_PROGRESS, 1)
        assert second.payload.confirmed is True
        assert unit_store.load_completed_steps(QLID, RefurbState.DIAGNOSED, 0) == []

    def test_list_units_filters_and_orders(self, unit_store):
        base = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
        for i, (state, category) in enumerate([
            (RefurbState.QUEUED, ProductCategory.PHONE),
            (RefurbState.BLOCKED, ProductCategory.TV),
            (RefurbState.QUEUED, ProductCategory.TV),
        ]):
            unit_store.save_unit(Unit(
                qlid=f"Q-{i}", pallet_id="P1BBY", current_state=state, category=category,
                created_at=base + timedelta(minutes=i),
            ), None)
        assert [u.qlid for u in unit_store.list_units()] == ["Q-2", "Q-1", "Q-0"]
        assert [u.qlid for u in unit_store.list_units(state=RefurbState.QUEUED)] == ["Q-2", "Q-0"]
        assert [u.qlid for u in unit_store.list_units(
            state=RefurbState.QUEUED, category=ProductCategory.TV,
        )] == ["Q-2"]
        assert unit_store.list_units(technician_id="tech-9") == []


class TestMemoryTransitionLog:
    def test_filters_by_unit(self, transition_log):
        transition_log.record(TransitionEvent(qlid=QLID, to_state=RefurbState.QUEUED, action=TransitionAction.CREATE))
        transition_log.record(TransitionEvent(qlid="OTHER", to_state=RefurbState.QUEUED, action=TransitionAction.CREATE))
        assert len(transition_log.list_for_unit(QLID)) == 1


class TestLocalUnitLock:
    def test_serializes_holders(self):
        lock = LocalUnitLock()
        entered = threading.Event()
        release = threading.Event()
        order: list[str] = []

        def first():
            with lock.hold(QLID):
                entered.set()
                release.wait(timeout=2)
                order.append("first")

        def second():
            entered.wait(timeout=2)
            with lock.hold(QLID):
                order.append("second")

        t1 = threading.Thread(target=first)
        t2 = threading.Thread(target=second)
        t1.start()
        t2.start()
        entered.wait(timeout=2)
        release.set()
        t1.join(timeout=2)
        t2.join(timeout=2)
        assert order == ["first", "second"]

    def test_idle_entries_are_dropped(self):
        lock = LocalUnitLock()
        with lock.hold(QLID):
            with lock.hold("P1BBY-QLID000000002"):
                assert set(lock._locks) == {QLID, "P1BBY-QLID000000002"}
        assert lock._locks == {}

    def test_entry_dropped_after_error(self):
        lock = LocalUnitLock()
        with pytest.raises(RuntimeError):
            with lock.hold(QLID):
                raise RuntimeError("boom")
        assert lock._locks == {}
