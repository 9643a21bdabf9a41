"""Shared fixtures: catalog, engine, service on memory backends."""

from __future__ import annotations

from typing import Callable

import pytest

from refurbflow.core.config import AppSettings
from refurbflow.models.steps import CompletedStepRecord
from refurbflow.models.unit import RefurbState, Unit
from refurbflow.workflow.catalog import StaticStepCatalog
from refurbflow.workflow.service import WorkflowService
from refurbflow.workflow.step_executor import submit_step
from refurbflow.workflow.transitions import StageTransitionEngine
from tests.fakes import LocalUnitLock, MemoryTransitionLog, MemoryUnitStore, satisfying_payload


@pytest.fixture
def catalog() -> StaticStepCatalog:
    return StaticStepCatalog()


@pytest.fixture
def engine(catalog) -> StageTransitionEngine:
    return StageTransitionEngine(catalog)


@pytest.fixture
def make_unit() -> Callable[..., Unit]:
    def _make(state: RefurbState = RefurbState.QUEUED, **kwargs) -> Unit:
        kwargs.setdefault("qlid", "P1BBY-QLID000000001")
        kwargs.setdefault("pallet_id", "P1BBY")
        return Unit(current_state=state, **kwargs)

    return _make


@pytest.fixture
def stage_records(engine) -> Callable[[Unit], list[CompletedStepRecord]]:
    """Records that satisfy every step of the unit's current stage."""

    def _records(unit: Unit) -> list[CompletedStepRecord]:
        steps = engine.steps_for(unit)
        records: list[CompletedStepRecord] = []
        for step in steps:
            submission = submit_step(unit, steps, records, step.code, satisfying_payload(step), "tech-1")
            records.append(submission.record)
        return records

    return _records


@pytest.fixture
def unit_store() -> MemoryUnitStore:
    return MemoryUnitStore()


@pytest.fixture
def transition_log() -> MemoryTransitionLog:
    return MemoryTransitionLog()


@pytest.fixture
def service(unit_store, transition_log, catalog) -> WorkflowService:
    return WorkflowService(
        unit_store=unit_store,
        catalog=catalog,
        transition_log=transition_log,
        lock=LocalUnitLock(),
        settings=AppSettings(),
    )


@pytest.fixture
def finish_stage(service) -> Callable[[str], None]:
    """Complete every pending required step of a unit's current stage through the service."""

    def _finish(qlid: str) -> None:
        prompt = service.get_prompt(qlid)
        while prompt.current_step is not None:
            service.complete_step(qlid, prompt.current_step.code, satisfying_payload(prompt.current_step), "tech-1")
            prompt = service.get_prompt(qlid)

    return _finish
