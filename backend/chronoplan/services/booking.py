from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable

from chronoplan.schemas.timetable import Timetable


class BookingLedger:
    """Occupancy of rooms, instructors and cohorts per (day, slot).

    Each booking is keyed by an owner (a placement serial in the generator, an
    entry index in the resolver), so a block being moved can ignore its own
    bookings while checking the target slots.
    """

    def __init__(self) -> None:
        self.room_occ: dict[tuple[str, str, str], list[Hashable]] = defaultdict(list)
        self.instructor_occ: dict[tuple[str, str, str], list[Hashable]] = defaultdict(list)
        self.cohort_occ: dict[tuple[str, str, Hashable], list[Hashable]] = defaultdict(list)
        self.instructor_minutes: dict[str, int] = defaultdict(int)

    @classmethod
    def from_timetable(
        cls,
        timetable: Timetable,
        cohort_of: Callable[[str], Hashable | None] | None = None,
        slot_minutes: int = 60,
    ) -> "BookingLedger":
        ledger = cls()
        for index, entry in timetable.course_entries():
            cohort = cohort_of(entry.course_id) if cohort_of else None
            ledger.book(
                index,
                entry.day,
                entry.start_time,
                room_id=entry.room_id,
                instructor_id=entry.instructor_id,
                cohort=cohort,
                minutes=slot_minutes,
            )
        return ledger

    def book(
        self,
        owner: Hashable,
        day: str,
        start_time: str,
        *,
        room_id: str | None,
        instructor_id: str | None,
        cohort: Hashable | None = None,
        minutes: int = 60,
    ) -> None:
        if room_id:
            self.room_occ[(day, start_time, room_id)].append(owner)
        if instructor_id:
            self.instructor_occ[(day, start_time, instructor_id)].append(owner)
            self.instructor_minutes[instructor_id] += minutes
        if cohort is not None:
            self.cohort_occ[(day, start_time, cohort)].append(owner)

    def release(
        self,
        owner: Hashable,
        day: str,
        start_time: str,
        *,
        room_id: str | None,
        instructor_id: str | None,
        cohort: Hashable | None = None,
        minutes: int = 60,
    ) -> None:
        if room_id:
            _discard(self.room_occ, (day, start_time, room_id), owner)
        if instructor_id:
            if _discard(self.instructor_occ, (day, start_time, instructor_id), owner):
                self.instructor_minutes[instructor_id] -= minutes
        if cohort is not None:
            _discard(self.cohort_occ, (day, start_time, cohort), owner)

    def room_free(self, day: str, start_time: str, room_id: str, ignore: Iterable[Hashable] = ()) -> bool:
        return _free(self.room_occ.get((day, start_time, room_id)), ignore)

    def instructor_free(self, day: str, start_time: str, instructor_id: str, ignore: Iterable[Hashable] = ()) -> bool:
        return _free(self.instructor_occ.get((day, start_time, instructor_id)), ignore)

    def cohort_free(self, day: str, start_time: str, cohort: Hashable | None, ignore: Iterable[Hashable] = ()) -> bool:
        if cohort is None:
            return True
        return _free(self.cohort_occ.get((day, start_time, cohort)), ignore)

    def hours_for(self, instructor_id: str) -> float:
        return self.instructor_minutes.get(instructor_id, 0) / 60


def _free(owners: list[Hashable] | None, ignore: Iterable[Hashable]) -> bool:
    if not owners:
        return True
    ignored = set(ignore)
    return all(owner in ignored for owner in owners)


def _discard(index: dict, key: tuple, owner: Hashable) -> bool:
    owners = index.get(key)
    if not owners or owner not in owners:
        return False
    owners.remove(owner)
    if not owners:
        del index[key]
    return True
