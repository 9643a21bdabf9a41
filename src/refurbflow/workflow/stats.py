"""Queue statistics over a set of unit snapshots."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Iterable

from refurbflow.models.prompt import UnitStats
from refurbflow.models.unit import RefurbState, Unit, utcnow


def compute_stats(units: Iterable[Unit], now: datetime | None = None) -> UnitStats:
    """Counts by state and category, units completed on ``now``'s UTC date, mean cycle time.

    Cycle time is ``completed_at - started_at`` over COMPLETE units that have both.
    """
    today = (now or utcnow()).date()
    units = list(units)
    completed = [u for u in units if u.current_state == RefurbState.COMPLETE and u.completed_at is not None]
    cycle_hours = [
        (u.completed_at - u.started_at).total_seconds() / 3600
        for u in completed
        if u.started_at is not None
    ]
    avg = sum(cycle_hours) / len(cycle_hours) if cycle_hours else 0.0
    return UnitStats(
        total=len(units),
        by_state=dict(Counter(u.current_state.value for u in units)),
        by_category=dict(Counter(u.category.value for u in units)),
        completed_today=sum(1 for u in completed if u.completed_at.date() == today),
        avg_cycle_time_hours=round(avg, 1),
    )
