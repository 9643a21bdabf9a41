"""State tables for the refurbishment workflow.

Every table is keyed by ``RefurbState`` and checked for completeness at import
time, so a new state cannot be added without classifying it everywhere.
"""

from __future__ import annotations

from refurbflow.models.unit import RefurbState, StateKind

S = RefurbState

MAIN_PATH: tuple[RefurbState, ...] = (
    S.QUEUED,
    S.ASSIGNED,
    S.IN_PROGRESS,
    S.SECURITY_PREP_COMPLETE,
    S.DIAGNOSED,
    S.REPAIR_IN_PROGRESS,
    S.REPAIR_COMPLETE,
    S.FINAL_TEST_IN_PROGRESS,
    S.FINAL_TEST_PASSED,
    S.CERTIFIED,
    S.COMPLETE,
)

STATE_KIND: dict[RefurbState, StateKind] = {
    S.QUEUED: StateKind.NORMAL,
    S.ASSIGNED: StateKind.NORMAL,
    S.IN_PROGRESS: StateKind.NORMAL,
    S.SECURITY_PREP_COMPLETE: StateKind.NORMAL,
    S.DIAGNOSED: StateKind.NORMAL,
    S.REPAIR_IN_PROGRESS: StateKind.NORMAL,
    S.REPAIR_COMPLETE: StateKind.NORMAL,
    S.FINAL_TEST_IN_PROGRESS: StateKind.NORMAL,
    S.FINAL_TEST_PASSED: StateKind.GATE,
    S.CERTIFIED: StateKind.NORMAL,
    S.COMPLETE: StateKind.TERMINAL,
    S.BLOCKED: StateKind.ESCAPE,
    S.ESCALATED: StateKind.ESCAPE,
    S.FINAL_TEST_FAILED: StateKind.ESCAPE,
    S.FAILED_DISPOSITION: StateKind.TERMINAL,
}

STATE_DISPLAY: dict[RefurbState, str] = {
    S.QUEUED: "Queued",
    S.ASSIGNED: "Assigned",
    S.IN_PROGRESS: "Security Prep",
    S.SECURITY_PREP_COMPLETE: "Security Prep Complete",
    S.DIAGNOSED: "Diagnosis",
    S.REPAIR_IN_PROGRESS: "Repair In Progress",
    S.REPAIR_COMPLETE: "Repair Complete",
    S.FINAL_TEST_IN_PROGRESS: "Final Test In Progress",
    S.FINAL_TEST_PASSED: "Final Test Passed",
    S.CERTIFIED: "Certified",
    S.COMPLETE: "Complete",
    S.BLOCKED: "Blocked",
    S.ESCALATED: "Escalated",
    S.FINAL_TEST_FAILED: "Final Test Failed",
    S.FAILED_DISPOSITION: "Failed - Disposition Required",
}

# Target of a plain Advance. None means Advance is rejected from that state.
ADVANCE_TARGET: dict[RefurbState, RefurbState | None] = {
    S.QUEUED: S.ASSIGNED,
    S.ASSIGNED: S.IN_PROGRESS,
    S.IN_PROGRESS: S.SECURITY_PREP_COMPLETE,
    S.SECURITY_PREP_COMPLETE: S.DIAGNOSED,
    S.DIAGNOSED: S.REPAIR_IN_PROGRESS,
    S.REPAIR_IN_PROGRESS: S.REPAIR_COMPLETE,
    S.REPAIR_COMPLETE: S.FINAL_TEST_IN_PROGRESS,
    S.FINAL_TEST_IN_PROGRESS: S.FINAL_TEST_PASSED,
    S.FINAL_TEST_PASSED: None,  # certification only
    S.CERTIFIED: S.COMPLETE,
    S.COMPLETE: None,
    S.BLOCKED: None,
    S.ESCALATED: None,
    S.FINAL_TEST_FAILED: None,
    S.FAILED_DISPOSITION: None,
}

BLOCKABLE: frozenset[RefurbState] = frozenset(s for s in MAIN_PATH if s is not S.COMPLETE)
RESOLVABLE: frozenset[RefurbState] = frozenset({S.BLOCKED, S.ESCALATED})
DISPOSABLE: frozenset[RefurbState] = frozenset({S.BLOCKED, S.ESCALATED, S.FINAL_TEST_FAILED})


def _check_exhaustive() -> None:
    for name, table in (
        ("STATE_KIND", STATE_KIND),
        ("STATE_DISPLAY", STATE_DISPLAY),
        ("ADVANCE_TARGET", ADVANCE_TARGET),
    ):
        missing = set(RefurbState) - set(table)
        if missing:
            raise RuntimeError(f"{name} is missing states: {sorted(missing)}")


_check_exhaustive()


def kind_of(state: RefurbState) -> StateKind:
    return STATE_KIND[state]


def is_main_path(state: RefurbState) -> bool:
    return state in MAIN_PATH


def display_name(state: RefurbState) -> str:
    return STATE_DISPLAY[state]
