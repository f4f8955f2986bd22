from __future__ import annotations

from collections import Counter

from chronoplan.schemas.time_grid import SLOT_MINUTES
from chronoplan.schemas.timetable import Timetable


def can_take_more(assigned_hours: float, extra_hours: float, max_load: int | None) -> bool:
    if max_load is None:
        return True
    return assigned_hours + extra_hours <= max_load


def weekly_hours_by_instructor(timetable: Timetable) -> dict[str, float]:
    minutes: Counter[str] = Counter()
    for _, entry in timetable.course_entries():
        minutes[entry.instructor_id] += SLOT_MINUTES
    return {instructor_id: total / 60 for instructor_id, total in minutes.items()}


def workload_percent(assigned_hours: float, max_load: int) -> float:
    if max_load <= 0:
        return 100.0
    return min(100.0, assigned_hours / max_load * 100.0)
