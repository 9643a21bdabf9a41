"""Attempt Counter: bookkeeping for the repair -> final test loop."""

from __future__ import annotations

from refurbflow.models.unit import Unit


def remaining(unit: Unit) -> int:
    return unit.max_attempts - unit.attempt_count


def exhausted(unit: Unit) -> bool:
    return remaining(unit) <= 0


def increment(unit: Unit) -> tuple[Unit, int]:
    """Return a copy of ``unit`` with one more attempt used, and the new count.

    Never pushes ``attempt_count`` past ``max_attempts``; callers check
    ``exhausted`` first.
    """
    if exhausted(unit):
        raise ValueError(f"Unit {unit.qlid} has no attempts remaining")
    count = unit.attempt_count + 1
    return unit.model_copy(update={"attempt_count": count}), count
