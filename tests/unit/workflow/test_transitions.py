"""Tests for the stage transition engine."""

from __future__ import annotations

import pytest

from refurbflow.core.exceptions import (
    InvalidStateError,
    MaxAttemptsExceededError,
    MissingReasonError,
    StepsIncompleteError,
    ValidationFailedError,
)
from refurbflow.models.events import TransitionAction
from refurbflow.models.unit import Disposition, FinalGrade, ProductCategory, RefurbState, Unit

S = RefurbState


class TestCreateAndAdvance:
    def test_create_queues_unit(self, engine):
        result = engine.create(Unit(qlid="Q1", pallet_id="P1", current_state=S.DIAGNOSED, attempt_count=1))
        assert result.unit.current_state == S.QUEUED
        assert result.unit.attempt_count == 0
        assert result.events[0].action == TransitionAction.CREATE
        assert result.events[0].from_state is None

    def test_advance_from_stage_without_steps(self, engine, make_unit):
        result = engine.advance(make_unit(S.QUEUED), actor="sup-1")
        assert result.unit.current_state == S.ASSIGNED
        event = result.events[0]
        assert (event.from_state, event.to_state, event.actor) == (S.QUEUED, S.ASSIGNED, "sup-1")

    def test_advance_requires_complete_stage(self, engine, make_unit):
        with pytest.raises(StepsIncompleteError) as exc_info:
            engine.advance(make_unit(S.IN_PROGRESS), records=[])
        assert exc_info.value.missing == ["GENERIC_FACTORY_RESET", "GENERIC_ACCOUNT_CHECK"]

    def test_advance_with_complete_stage(self, engine, make_unit, stage_records):
        unit = make_unit(S.IN_PROGRESS, current_step_index=2)
        result = engine.advance(unit, stage_records(unit))
        assert result.unit.current_state == S.SECURITY_PREP_COMPLETE
        assert result.unit.current_step_index == 0

    def test_advance_does_not_modify_input(self, engine, make_unit):
        unit = make_unit(S.QUEUED)
        engine.advance(unit)
        assert unit.current_state == S.QUEUED

    def test_advancing_twice_without_steps_fails(self, engine, make_unit, stage_records):
        unit = make_unit(S.SECURITY_PREP_COMPLETE)
        diagnosed = engine.advance(unit).unit
        assert diagnosed.current_state == S.DIAGNOSED
        with pytest.raises(StepsIncompleteError):
            engine.advance(diagnosed, records=[])

    def test_started_at_set_once(self, engine, make_unit):
        unit = engine.advance(make_unit(S.ASSIGNED)).unit
        assert unit.started_at is not None

    def test_advance_from_final_test_passes(self, engine, make_unit, stage_records):
        unit = make_unit(S.FINAL_TEST_IN_PROGRESS)
        assert engine.advance(unit, stage_records(unit)).unit.current_state == S.FINAL_TEST_PASSED

    @pytest.mark.parametrize(
        "state",
        [S.FINAL_TEST_PASSED, S.COMPLETE, S.BLOCKED, S.ESCALATED, S.FINAL_TEST_FAILED, S.FAILED_DISPOSITION],
    )
    def test_advance_rejected(self, engine, make_unit, state):
        with pytest.raises(InvalidStateError):
            engine.advance(make_unit(state))


class TestAssign:
    def test_assign_from_queue_advances(self, engine, make_unit):
        result = engine.assign(make_unit(S.QUEUED), "tech-9")
        assert result.unit.current_state == S.ASSIGNED
        assert result.unit.assigned_technician_id == "tech-9"
        assert result.events[0].actor == "tech-9"

    def test_reassign_keeps_state(self, engine, make_unit):
        result = engine.assign(make_unit(S.DIAGNOSED, assigned_technician_id="tech-1"), "tech-2", actor="sup")
        assert result.unit.current_state == S.DIAGNOSED
        assert result.unit.assigned_technician_id == "tech-2"
        assert result.events == []

    def test_assign_requires_technician(self, engine, make_unit):
        with pytest.raises(ValidationFailedError):
            engine.assign(make_unit(S.QUEUED), "  ")

    def test_assign_terminal_rejected(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.assign(make_unit(S.COMPLETE), "tech-1")


class TestBlockResolve:
    def test_block_then_resolve_restores_state(self, engine, make_unit):
        unit = make_unit(S.REPAIR_IN_PROGRESS, current_step_index=0)
        blocked = engine.block(unit, "cracked screen", actor="tech-1").unit
        assert blocked.current_state == S.BLOCKED
        assert blocked.prior_state == S.REPAIR_IN_PROGRESS
        assert blocked.block_reason == "cracked screen"

        resolved = engine.resolve(blocked, records=[], actor="sup-1").unit
        assert resolved.current_state == S.REPAIR_IN_PROGRESS
        assert resolved.current_step_index == unit.current_step_index
        assert resolved.prior_state is None
        assert resolved.block_reason is None

    def test_resolve_recomputes_index_from_records(self, engine, make_unit, stage_records):
        unit = make_unit(S.DIAGNOSED)
        records = stage_records(unit)[:1]
        blocked = engine.block(unit, "waiting on parts").unit
        resolved = engine.resolve(blocked, records).unit
        assert resolved.current_state == S.DIAGNOSED
        assert resolved.current_step_index == 1

    def test_block_event_carries_reason(self, engine, make_unit):
        event = engine.block(make_unit(S.DIAGNOSED), "no charger").events[0]
        assert event.action == TransitionAction.BLOCK
        assert event.reason == "no charger"

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_block_requires_reason(self, engine, make_unit, reason):
        with pytest.raises(MissingReasonError):
            engine.block(make_unit(S.DIAGNOSED), reason)

    @pytest.mark.parametrize("state", [S.COMPLETE, S.BLOCKED, S.FAILED_DISPOSITION, S.FINAL_TEST_FAILED])
    def test_block_rejected(self, engine, make_unit, state):
        with pytest.raises(InvalidStateError):
            engine.block(make_unit(state), "reason")

    def test_escalate_keeps_origin(self, engine, make_unit):
        blocked = engine.block(make_unit(S.IN_PROGRESS), "activation lock").unit
        escalated = engine.escalate(blocked, "needs supervisor").unit
        assert escalated.current_state == S.ESCALATED
        assert escalated.prior_state == S.IN_PROGRESS
        assert engine.resolve(escalated).unit.current_state == S.IN_PROGRESS

    def test_escalate_only_from_blocked(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.escalate(make_unit(S.DIAGNOSED))

    def test_resolve_without_origin_rejected(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.resolve(make_unit(S.BLOCKED))
        with pytest.raises(InvalidStateError):
            engine.resolve(make_unit(S.DIAGNOSED))


class TestFinalTestLoop:
    def _failed(self, engine, unit, stage_records):
        return engine.fail_final_test(unit, stage_records(unit), reason="no audio").unit

    def test_fail_retry_fail_exhausts_attempts(self, engine, make_unit, stage_records):
        unit = make_unit(S.FINAL_TEST_IN_PROGRESS, max_attempts=2)

        first = self._failed(engine, unit, stage_records)
        assert first.current_state == S.FINAL_TEST_FAILED
        assert first.attempt_count == 1

        repair = engine.retry(first).unit
        assert repair.current_state == S.REPAIR_IN_PROGRESS
        assert repair.attempt_count == 1

        # Walk the repair cycle back to final test.
        unit = engine.advance(repair, stage_records(repair)).unit
        unit = engine.advance(unit).unit
        assert unit.current_state == S.FINAL_TEST_IN_PROGRESS

        second = self._failed(engine, unit, stage_records)
        assert second.current_state == S.FAILED_DISPOSITION
        assert second.attempt_count == 2
        assert second.completed_at is not None

    def test_fail_at_last_attempt_goes_to_disposition(self, engine, make_unit, stage_records):
        unit = make_unit(S.FINAL_TEST_IN_PROGRESS, attempt_count=2, max_attempts=3)
        failed = self._failed(engine, unit, stage_records)
        assert failed.current_state == S.FAILED_DISPOSITION
        assert failed.attempt_count == 3

    def test_fail_with_no_attempts_configured(self, engine, make_unit, stage_records):
        unit = make_unit(S.FINAL_TEST_IN_PROGRESS, max_attempts=0)
        failed = self._failed(engine, unit, stage_records)
        assert failed.current_state == S.FAILED_DISPOSITION
        assert failed.attempt_count == 0

    def test_fail_requires_complete_stage(self, engine, make_unit):
        with pytest.raises(StepsIncompleteError):
            engine.fail_final_test(make_unit(S.FINAL_TEST_IN_PROGRESS), [])

    def test_fail_only_from_final_test(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.fail_final_test(make_unit(S.REPAIR_IN_PROGRESS))

    def test_pass_final_test(self, engine, make_unit, stage_records):
        unit = make_unit(S.FINAL_TEST_IN_PROGRESS)
        result = engine.pass_final_test(unit, stage_records(unit))
        assert result.unit.current_state == S.FINAL_TEST_PASSED
        assert result.events[0].action == TransitionAction.PASS

    def test_retry_when_exhausted(self, engine, make_unit):
        unit = make_unit(S.FINAL_TEST_FAILED, attempt_count=2, max_attempts=2)
        with pytest.raises(MaxAttemptsExceededError) as exc_info:
            engine.retry(unit)
        assert exc_info.value.attempt_count == 2

    def test_retry_only_from_failed(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.retry(make_unit(S.REPAIR_COMPLETE))


class TestCertify:
    def test_certify_completes_unit(self, engine, make_unit):
        unit = make_unit(S.FINAL_TEST_PASSED)
        result = engine.certify(unit, FinalGrade.B, True, actor="qa-1")
        assert result.unit.current_state == S.COMPLETE
        assert result.unit.final_grade == FinalGrade.B
        assert result.unit.warranty_eligible is True
        assert result.unit.completed_at is not None
        assert [e.action for e in result.events] == [TransitionAction.CERTIFY, TransitionAction.ADVANCE]
        assert [e.to_state for e in result.events] == [S.CERTIFIED, S.COMPLETE]

    def test_certify_twice_rejected(self, engine, make_unit):
        done = engine.certify(make_unit(S.FINAL_TEST_PASSED), "B", False).unit
        with pytest.raises(InvalidStateError):
            engine.certify(done, "A", False)

    def test_certify_before_passing_rejected(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.certify(make_unit(S.FINAL_TEST_IN_PROGRESS), "A", True)


class TestDispose:
    @pytest.mark.parametrize("state", [S.BLOCKED, S.ESCALATED, S.FINAL_TEST_FAILED])
    def test_dispose_from_escape_states(self, engine, make_unit, state):
        unit = make_unit(state, prior_state=S.DIAGNOSED)
        result = engine.dispose(unit, Disposition.SALVAGE, "board is dead")
        assert result.unit.current_state == S.FAILED_DISPOSITION
        assert result.unit.disposition == Disposition.SALVAGE

    def test_dispose_requires_reason(self, engine, make_unit):
        with pytest.raises(MissingReasonError):
            engine.dispose(make_unit(S.BLOCKED), Disposition.RECYCLE, "")

    def test_dispose_from_main_path_rejected(self, engine, make_unit):
        with pytest.raises(InvalidStateError):
            engine.dispose(make_unit(S.DIAGNOSED), Disposition.RECYCLE, "gave up")


def test_laptop_walks_full_main_path(engine, make_unit, stage_records):
    unit = make_unit(S.QUEUED, category=ProductCategory.LAPTOP)
    unit = engine.assign(unit, "tech-1").unit
    while unit.current_state != S.FINAL_TEST_PASSED:
        unit = engine.advance(unit, stage_records(unit)).unit
    unit = engine.certify(unit, "A", True).unit
    assert unit.current_state == S.COMPLETE
    assert unit.attempt_count == 0


def test_advance_from_certified_completes(engine, make_unit):
    unit = engine.advance(make_unit(S.CERTIFIED, final_grade=FinalGrade.C)).unit
    assert unit.current_state == S.COMPLETE
    assert unit.completed_at is not None
