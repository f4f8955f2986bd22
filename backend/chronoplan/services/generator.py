from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
import hashlib
import json
import logging
from time import perf_counter

from chronoplan.core.exceptions import ValidationError
from chronoplan.schemas.course import Course
from chronoplan.schemas.faculty import Instructor
from chronoplan.schemas.generator import GenerationConstraints, GenerationResult
from chronoplan.schemas.room import Room
from chronoplan.schemas.time_grid import DAYS, lab_slot_pairs
from chronoplan.schemas.timetable import (
    CourseRef,
    InstructorRef,
    RoomRef,
    ScheduleEntry,
    Timetable,
    sort_entries,
)
from chronoplan.services.booking import BookingLedger
from chronoplan.services.workload import can_take_more

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Placement:
    serial: int
    course: Course
    day: str
    start_times: tuple[str, ...]
    room: Room


class TimetableGenerator:
    """Greedy first-fit placement in a fixed, stable search order.

    Courses are visited in the order given. Theory courses try their preferred
    slots before the rest of the grid; labs try the lab window before other
    consecutive pairs. Rooms are tried in the order given. Nothing is random,
    so the same inputs always give the same timetable.
    """

    def __init__(
        self,
        courses: Sequence[Course],
        rooms: Sequence[Room],
        constraints: GenerationConstraints | None = None,
    ) -> None:
        self.constraints = constraints or GenerationConstraints()
        self.courses = list(courses)
        self.rooms = list(rooms)
        self.instructors: dict[str, Instructor] | None = (
            {item.id: item for item in self.constraints.instructors}
            if self.constraints.instructors is not None
            else None
        )
        self._validate_inputs()

        self.eligible_slots = self.constraints.eligible_slots()
        self.lab_pairs = lab_slot_pairs(self.constraints.max_daily_hours)
        window = set(self.constraints.lab_preferred_slots)
        self.lab_window_pairs = tuple(pair for pair in self.lab_pairs if pair[0] in window and pair[1] in window)

    def _validate_inputs(self) -> None:
        if not self.courses:
            raise ValidationError("At least one course is required for timetable generation")
        if not self.rooms:
            raise ValidationError("At least one room is required for timetable generation")

        seen: set[str] = set()
        duplicates: set[str] = set()
        for course in self.courses:
            if course.id in seen:
                duplicates.add(course.id)
            seen.add(course.id)
        if duplicates:
            raise ValidationError(
                f"Duplicate course id(s): {', '.join(sorted(duplicates))}",
                details={"course_ids": sorted(duplicates)},
            )

        if self.instructors is not None:
            unresolved = sorted({c.instructor_id for c in self.courses if c.instructor_id not in self.instructors})
            if unresolved:
                raise ValidationError(
                    f"Unknown instructor id(s): {', '.join(unresolved)}",
                    details={"instructor_ids": unresolved},
                )

    def generate(self) -> GenerationResult:
        started = perf_counter()
        ledger = BookingLedger()
        placements: list[Placement] = []
        unscheduled: list[Course] = []

        for serial, course in enumerate(self.courses):
            placement = self._place(serial, course, ledger)
            if placement is None:
                unscheduled.append(course)
                logger.warning(
                    "Could not place course %s (%s); marking it unscheduled",
                    course.code,
                    course.lecture_type.value,
                )
                continue
            placements.append(placement)
            for start_time in placement.start_times:
                ledger.book(
                    serial,
                    placement.day,
                    start_time,
                    room_id=placement.room.id,
                    instructor_id=course.instructor_id,
                    cohort=course.cohort,
                )
            logger.debug(
                "Placed %s on %s %s in %s",
                course.code,
                placement.day,
                "/".join(placement.start_times),
                placement.room.name,
            )

        timetable = self._build_timetable(placements)
        logger.info(
            "Generated timetable %s for %s: %d course(s) placed, %d unscheduled in %.3fs",
            timetable.id,
            timetable.scope,
            len(placements),
            len(unscheduled),
            perf_counter() - started,
        )
        return GenerationResult(timetable=timetable, unscheduled=unscheduled)

    def candidate_rooms(self, course: Course) -> list[Room]:
        # Rooms that are too small or of the wrong type are simply not candidates.
        return [room for room in self.rooms if room.fits(course) and room.admits(course)]

    def _place(self, serial: int, course: Course, ledger: BookingLedger) -> Placement | None:
        rooms = self.candidate_rooms(course)
        if not rooms:
            logger.debug("No compatible room for %s", course.code)
            return None
        if not can_take_more(ledger.hours_for(course.instructor_id), course.weekly_hours, self.constraints.faculty_max_load):
            logger.debug("Instructor %s is at the weekly load cap", course.instructor_id)
            return None

        blocks = self._lab_blocks() if course.is_lab else self._theory_blocks(course)
        for day, start_times in blocks:
            if not self._instructor_and_cohort_free(course, day, start_times, ledger):
                continue
            for room in rooms:
                if all(ledger.room_free(day, start_time, room.id) for start_time in start_times):
                    return Placement(serial=serial, course=course, day=day, start_times=start_times, room=room)
        return None

    def _theory_blocks(self, course: Course) -> Iterator[tuple[str, tuple[str, ...]]]:
        tried: set[tuple[str, str]] = set()
        for start_time in course.preferred_time_slots:
            if start_time not in self.eligible_slots:
                continue
            for day in DAYS:
                tried.add((day, start_time))
                yield day, (start_time,)
        for day in DAYS:
            for start_time in self.eligible_slots:
                if (day, start_time) not in tried:
                    yield day, (start_time,)

    def _lab_blocks(self) -> Iterator[tuple[str, tuple[str, ...]]]:
        for day in DAYS:
            for pair in self.lab_window_pairs:
                yield day, pair
        for day in DAYS:
            for pair in self.lab_pairs:
                if pair not in self.lab_window_pairs:
                    yield day, pair

    def _instructor_and_cohort_free(
        self,
        course: Course,
        day: str,
        start_times: tuple[str, ...],
        ledger: BookingLedger,
    ) -> bool:
        instructor = self.instructors.get(course.instructor_id) if self.instructors else None
        for start_time in start_times:
            if instructor is not None and not instructor.is_available(day, start_time):
                return False
            if not ledger.instructor_free(day, start_time, course.instructor_id):
                return False
            if not ledger.cohort_free(day, start_time, course.cohort):
                return False
        return True

    def _course_ref(self, course: Course) -> CourseRef:
        ref = CourseRef.from_course(course)
        if not ref.instructor.name and self.instructors and course.instructor_id in self.instructors:
            ref.instructor = InstructorRef(id=course.instructor_id, name=self.instructors[course.instructor_id].name)
        return ref

    def _build_timetable(self, placements: list[Placement]) -> Timetable:
        entries = [ScheduleEntry.lunch(day) for day in DAYS]
        for placement in placements:
            course_ref = self._course_ref(placement.course)
            room_ref = RoomRef.from_room(placement.room)
            is_block = len(placement.start_times) == 2
            for offset, start_time in enumerate(placement.start_times):
                entries.append(
                    ScheduleEntry(
                        day=placement.day,
                        start_time=start_time,
                        course=course_ref,
                        room=room_ref,
                        is_lab_first=is_block and offset == 0,
                        is_lab_second=is_block and offset == 1,
                    )
                )
        entries = sort_entries(entries)

        cohorts = {course.cohort for course in self.courses}
        year, branch, division = cohorts.pop() if len(cohorts) == 1 else (None, None, None)
        return Timetable(
            id=timetable_digest(year, branch, division, entries),
            year=year,
            branch=branch,
            division=division,
            entries=entries,
        )


def timetable_digest(year: int | None, branch: str | None, division: str | None, entries: list[ScheduleEntry]) -> str:
    payload = {
        "scope": [year, branch, division],
        "entries": [entry.model_dump(mode="json", by_alias=True) for entry in entries],
    }
    digest = hashlib.sha1(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()
    return f"tt-{digest[:16]}"


def generate(
    courses: Sequence[Course],
    rooms: Sequence[Room],
    constraints: GenerationConstraints | None = None,
) -> GenerationResult:
    return TimetableGenerator(courses, rooms, constraints).generate()
