from __future__ import annotations

from collections.abc import Hashable, Iterator, Sequence
import logging

from chronoplan.core.exceptions import ValidationError
from chronoplan.schemas.conflict import Conflict, ResolvedConflict, ResolveResult, RoomChange, TimeChange
from chronoplan.schemas.course import Course
from chronoplan.schemas.faculty import Instructor
from chronoplan.schemas.room import Room, room_types_for
from chronoplan.schemas.time_grid import DAYS, SLOT_INDEX, lab_slot_pairs, teaching_slots
from chronoplan.schemas.timetable import RoomRef, ScheduleEntry, Timetable
from chronoplan.services.booking import BookingLedger
from chronoplan.services.repositories import InMemoryRoomRepository, RoomRepository

logger = logging.getLogger(__name__)


class ConflictResolver:
    """Relocates the mobile entry of each conflict to a free room or time.

    For every conflict the later entry in timetable order is mobile and the
    earlier one stays fixed. Room conflicts look for another room at the same
    time; instructor conflicts move the whole block (a lab pair or a single
    theory hour) to another day/slot in the same room. Candidates are scanned
    in a stable order and the first feasible one wins. Bookings are updated
    after every move, so later conflicts in the batch see earlier fixes.
    """

    def __init__(
        self,
        room_repository: RoomRepository,
        *,
        courses: Sequence[Course] | None = None,
        instructors: Sequence[Instructor] | None = None,
        max_daily_hours: int | None = None,
    ) -> None:
        self.room_repository = room_repository
        self.courses = {course.id: course for course in courses or []}
        self.instructors = {item.id: item for item in instructors or []}
        self.max_daily_hours = max_daily_hours
        self._fallback_cohort: tuple = (None, None, None)

    def resolve(self, timetable: Timetable, conflicts: Sequence[Conflict]) -> ResolveResult:
        working = timetable.model_copy(deep=True)
        entries = working.entries
        self._fallback_cohort = (working.year, working.branch, working.division)
        ledger = BookingLedger.from_timetable(working, self._cohort_of)

        resolved: list[ResolvedConflict] = []
        unresolved: list[Conflict] = []
        for conflict in conflicts:
            for index in conflict.entry_indices:
                if index < 0 or index >= len(entries):
                    raise ValidationError(
                        f"Conflict references entry {index}, but the timetable has {len(entries)} entries"
                    )
            if not _still_conflicting(conflict, entries):
                logger.debug("Conflict at %s %s already cleared by an earlier move", conflict.day, conflict.start_time)
                continue

            mobile = conflict.mobile_index
            block = self._block(working, mobile)
            if conflict.type == "room":
                resolution = self._reassign_room(entries, block, ledger)
            else:
                resolution = self._reassign_time(entries, block, ledger)

            if resolution is None:
                logger.warning(
                    "No feasible reassignment for %s conflict at %s %s (%s)",
                    conflict.type,
                    conflict.day,
                    conflict.start_time,
                    ", ".join(course.code for course in conflict.courses),
                )
                unresolved.append(conflict)
                continue
            resolved.append(ResolvedConflict(conflict=conflict, entry_index=mobile, resolution=resolution))

        # A later move can clear a conflict that had no direct fix of its own.
        unresolved = [conflict for conflict in unresolved if _still_conflicting(conflict, entries)]

        logger.info(
            "Resolved %d of %d conflict(s) for %s; %d left for manual action",
            len(resolved),
            len(conflicts),
            working.scope,
            len(unresolved),
        )
        return ResolveResult(timetable=working, resolved=resolved, unresolved=unresolved)

    def _cohort_of(self, course_id: str) -> Hashable | None:
        course = self.courses.get(course_id)
        if course is not None:
            return course.cohort
        if self._fallback_cohort == (None, None, None):
            return None
        return self._fallback_cohort

    def _block(self, timetable: Timetable, index: int) -> list[int]:
        partner = timetable.lab_partner(index)
        if partner is None:
            return [index]
        return sorted([index, partner], key=lambda item: SLOT_INDEX[timetable.entries[item].start_time])

    def _min_capacity(self, entry: ScheduleEntry, course: Course | None) -> int:
        if course is not None:
            return course.capacity
        # Without the course record the current room sets the capacity class.
        for room in self.room_repository.all_rooms():
            if room.id == entry.room_id:
                return room.capacity
        return 0

    def _candidate_rooms(self, entry: ScheduleEntry) -> list[Room]:
        course = self.courses.get(entry.course_id)
        timetable_year, timetable_branch, _ = self._fallback_cohort
        return self.room_repository.find_available(
            room_types_for(entry.course.lecture_type),
            min_capacity=self._min_capacity(entry, course),
            year=course.year if course else timetable_year,
            department=course.branch if course else timetable_branch,
        )

    def _reassign_room(self, entries: list[ScheduleEntry], block: list[int], ledger: BookingLedger) -> RoomChange | None:
        entry = entries[block[0]]
        for room in self._candidate_rooms(entry):
            if room.id == entry.room_id:
                continue
            feasible = all(
                ledger.room_free(entries[index].day, entries[index].start_time, room.id, ignore=block)
                and ledger.instructor_free(entries[index].day, entries[index].start_time, entry.instructor_id, ignore=block)
                for index in block
            )
            if not feasible:
                continue
            room_ref = RoomRef.from_room(room)
            for index in block:
                current = entries[index]
                ledger.release(index, current.day, current.start_time, room_id=current.room_id, instructor_id=None)
                ledger.book(index, current.day, current.start_time, room_id=room.id, instructor_id=None)
                entries[index] = current.model_copy(update={"room": room_ref})
            logger.debug("Moved %s to room %s", entry.course.code, room.name)
            return RoomChange(room_id=room.id)
        return None

    def _time_candidates(self, block_size: int) -> Iterator[tuple[str, tuple[str, ...]]]:
        if block_size == 2:
            for day in DAYS:
                for pair in lab_slot_pairs(self.max_daily_hours):
                    yield day, pair
            return
        for day in DAYS:
            for start_time in teaching_slots(self.max_daily_hours):
                yield day, (start_time,)

    def _reassign_time(self, entries: list[ScheduleEntry], block: list[int], ledger: BookingLedger) -> TimeChange | None:
        entry = entries[block[0]]
        current = tuple(entries[index].start_time for index in block)
        instructor = self.instructors.get(entry.instructor_id)
        cohort = self._cohort_of(entry.course_id)

        for day, start_times in self._time_candidates(len(block)):
            if day == entry.day and start_times == current:
                continue
            feasible = all(
                ledger.room_free(day, start_time, entry.room_id, ignore=block)
                and ledger.instructor_free(day, start_time, entry.instructor_id, ignore=block)
                and ledger.cohort_free(day, start_time, cohort, ignore=block)
                and (instructor is None or instructor.is_available(day, start_time))
                for start_time in start_times
            )
            if not feasible:
                continue
            for index, start_time in zip(block, start_times):
                old = entries[index]
                ledger.release(
                    index, old.day, old.start_time, room_id=old.room_id, instructor_id=old.instructor_id, cohort=cohort
                )
                ledger.book(index, day, start_time, room_id=old.room_id, instructor_id=old.instructor_id, cohort=cohort)
                entries[index] = old.model_copy(update={"day": day, "start_time": start_time})
            logger.debug("Moved %s to %s %s", entry.course.code, day, start_times[0])
            return TimeChange(day=day, start_time=start_times[0])
        return None


def _still_conflicting(conflict: Conflict, entries: list[ScheduleEntry]) -> bool:
    first, second = (entries[index] for index in conflict.entry_indices)
    if first.is_free or second.is_free or first.bucket != second.bucket:
        return False
    if conflict.type == "room":
        return first.room_id is not None and first.room_id == second.room_id
    return first.instructor_id is not None and first.instructor_id == second.instructor_id


def resolve(
    timetable: Timetable,
    conflicts: Sequence[Conflict],
    rooms: Sequence[Room],
    courses: Sequence[Course] | None = None,
) -> ResolveResult:
    return ConflictResolver(InMemoryRoomRepository(rooms), courses=courses).resolve(timetable, conflicts)
