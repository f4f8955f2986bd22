from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from chronoplan.schemas.conflict import Conflict
from chronoplan.schemas.time_grid import DAYS, LUNCH_SLOT, TIME_SLOTS, bucket_sort_key
from chronoplan.schemas.timetable import ScheduleEntry, Timetable


class ConflictService:
    def __init__(self, timetable: Timetable):
        self.timetable = timetable
        self.entries: list[ScheduleEntry] = timetable.entries

    def _buckets(self) -> dict[tuple[str, str], list[int]]:
        buckets: dict[tuple[str, str], list[int]] = defaultdict(list)
        for index, entry in enumerate(self.entries):
            if entry.is_free:
                continue
            buckets[entry.bucket].append(index)
        return buckets

    def detect(self) -> list[Conflict]:
        return self.detect_in_buckets(None)

    def detect_in_buckets(self, keys: Iterable[tuple[str, str]] | None) -> list[Conflict]:
        """Pairwise room/instructor checks inside each (day, start time) bucket.

        Buckets are visited in grid order and pairs in entry order, so the output
        is stable for an unchanged timetable. `keys` limits the scan to the given
        buckets; None scans all of them.
        """
        buckets = self._buckets()
        if keys is None:
            selected = list(buckets)
        else:
            selected = [key for key in set(keys) if key in buckets]
        selected.sort(key=lambda key: bucket_sort_key(*key))

        conflicts: list[Conflict] = []
        for key in selected:
            indices = buckets[key]
            for position, i in enumerate(indices):
                first = self.entries[i]
                for j in indices[position + 1:]:
                    second = self.entries[j]
                    if first.room_id and first.room_id == second.room_id:
                        conflicts.append(self._conflict("room", i, j))
                    if first.instructor_id and first.instructor_id == second.instructor_id:
                        conflicts.append(self._conflict("instructor", i, j))
        return conflicts

    def _conflict(self, conflict_type: str, i: int, j: int) -> Conflict:
        first, second = self.entries[i], self.entries[j]
        when = f"{first.day} {first.start_time}"
        if conflict_type == "room":
            message = f"Room {first.room.name} is scheduled for two different courses at the same time ({when})"
        else:
            instructor = first.course.instructor.name or first.course.instructor.id
            message = f"Instructor {instructor} is scheduled for two different courses at the same time ({when})"
        return Conflict(
            type=conflict_type,
            day=first.day,
            start_time=first.start_time,
            entry_indices=(i, j),
            courses=[first.course, second.course],
            message=message,
        )

    def available_slots(self) -> list[tuple[str, str]]:
        """Grid slots (lunch excluded) that hold no course at all."""
        occupied = set(self._buckets())
        return [
            (day, start_time)
            for day in DAYS
            for start_time in TIME_SLOTS
            if start_time != LUNCH_SLOT and (day, start_time) not in occupied
        ]


def detect(timetable: Timetable) -> list[Conflict]:
    return ConflictService(timetable).detect()


def detect_in_buckets(timetable: Timetable, keys: Iterable[tuple[str, str]]) -> list[Conflict]:
    return ConflictService(timetable).detect_in_buckets(keys)


def available_slots(timetable: Timetable) -> list[tuple[str, str]]:
    return ConflictService(timetable).available_slots()
