from __future__ import annotations

from collections.abc import Sequence
import logging

from chronoplan.core.exceptions import NotFoundError, ValidationError
from chronoplan.schemas.change import EditAccepted, EditOutcome, EditRejected, PendingChangeSet, ProposedChange
from chronoplan.schemas.course import Course
from chronoplan.schemas.room import Room
from chronoplan.schemas.time_grid import LUNCH_SLOT, SLOT_INDEX, bucket_sort_key, next_slot
from chronoplan.schemas.timetable import CourseRef, RoomRef, ScheduleEntry, Timetable
from chronoplan.services.conflict_service import ConflictService

logger = logging.getLogger(__name__)


class ManualEditValidator:
    """Checks a batch of manual changes against a timetable, all or nothing.

    A change naming a course relocates that course: its current entries are
    dropped and it is placed at the given slot and room. A lab course given a
    single change is placed on that slot and the one after it. A change without
    a course frees the course entry at that slot. The hypothetical timetable is
    checked only in the buckets the batch touches, and any room or instructor
    collision involving a placed entry rejects the whole batch.
    """

    def __init__(self, courses: Sequence[Course], rooms: Sequence[Room]) -> None:
        self.courses = {course.id: course for course in courses}
        self.rooms = {room.id: room for room in rooms}

    def validate(self, timetable: Timetable, changes: Sequence[ProposedChange] | PendingChangeSet) -> EditOutcome:
        if isinstance(changes, PendingChangeSet):
            changes = changes.changes
        if not changes:
            raise ValidationError("At least one change is required")

        entries = [entry.model_copy(deep=True) for entry in timetable.entries]
        touched: set[tuple[str, str]] = set()

        freed = self._deleted_indices(timetable, [change for change in changes if change.is_deletion])
        placements = self._placements(timetable, [change for change in changes if not change.is_deletion])

        relocated = {course_id for course_id, _ in placements}
        kept: list[ScheduleEntry] = []
        for index, entry in enumerate(entries):
            if index in freed:
                touched.add(entry.bucket)
                kept.append(ScheduleEntry.free(entry.day, entry.start_time))
                continue
            if entry.course_id in relocated:
                touched.add(entry.bucket)
                continue
            kept.append(entry)

        new_entries: list[ScheduleEntry] = []
        for _, entry in placements:
            new_entries.append(entry)
            touched.add(entry.bucket)
        placed_buckets = {entry.bucket for entry in new_entries}
        # A course dropped into an empty slot replaces the free marker there.
        kept = [
            entry
            for entry in kept
            if not (entry.is_free and entry.start_time != LUNCH_SLOT and entry.bucket in placed_buckets)
        ]

        new_ids = {id(entry) for entry in new_entries}
        merged = sorted(kept + new_entries, key=lambda entry: bucket_sort_key(entry.day, entry.start_time))
        new_indices = {index for index, entry in enumerate(merged) if id(entry) in new_ids}
        candidate = timetable.model_copy(update={"entries": merged})

        conflicts = [
            conflict
            for conflict in ConflictService(candidate).detect_in_buckets(touched)
            if new_indices.intersection(conflict.entry_indices)
        ]
        if conflicts:
            logger.warning(
                "Rejected %d manual change(s) on %s: %d conflict(s)",
                len(changes),
                timetable.id,
                len(conflicts),
            )
            return EditRejected(message="The changes would create conflicts in the schedule", conflicts=conflicts)

        logger.info("Accepted %d manual change(s) on %s", len(changes), timetable.id)
        return EditAccepted(timetable=candidate)

    def _deleted_indices(self, timetable: Timetable, deletions: list[ProposedChange]) -> set[int]:
        freed: set[int] = set()
        for change in deletions:
            matches = [
                index
                for index, entry in timetable.course_entries()
                if entry.bucket == (change.day, change.start_time)
                and (change.room_id is None or entry.room_id == change.room_id)
            ]
            if not matches:
                raise NotFoundError("Schedule entry", f"{change.day} {change.start_time}")
            for index in matches:
                freed.add(index)
                partner = timetable.lab_partner(index)
                if partner is not None:
                    freed.add(partner)
        return freed

    def _placements(self, timetable: Timetable, changes: list[ProposedChange]) -> list[tuple[str, ScheduleEntry]]:
        by_course: dict[str, list[ProposedChange]] = {}
        for change in changes:
            by_course.setdefault(change.course_id, []).append(change)

        placements: list[tuple[str, ScheduleEntry]] = []
        for course_id, course_changes in by_course.items():
            course = self.courses.get(course_id)
            if course is None:
                raise NotFoundError("Course", course_id)
            rooms = [self._room_for(course, change) for change in course_changes]
            course_ref = self._course_ref(timetable, course)
            slots = self._slots_for(course, course_changes)
            room_ref = RoomRef.from_room(rooms[0])
            is_block = len(slots) == 2
            for offset, (day, start_time) in enumerate(slots):
                placements.append(
                    (
                        course_id,
                        ScheduleEntry(
                            day=day,
                            start_time=start_time,
                            course=course_ref,
                            room=room_ref,
                            is_lab_first=is_block and offset == 0,
                            is_lab_second=is_block and offset == 1,
                        ),
                    )
                )
        return placements

    def _room_for(self, course: Course, change: ProposedChange) -> Room:
        if change.room_id is None:
            raise ValidationError(f"roomId is required to place course {course.code}")
        room = self.rooms.get(change.room_id)
        if room is None:
            raise NotFoundError("Room", change.room_id)
        if change.start_time == LUNCH_SLOT:
            raise ValidationError(f"{LUNCH_SLOT} is reserved for lunch; {course.code} cannot be placed there")
        if not room.admits(course):
            raise ValidationError(
                f"Room {room.name} is not available for year {course.year} {course.branch}",
                details={"room_id": room.id, "course_id": course.id},
            )
        if not room.fits(course):
            raise ValidationError(
                f"Room {room.name} ({room.type.value}, {room.capacity} seats) cannot host {course.code}",
                details={"room_id": room.id, "course_id": course.id},
            )
        return room

    def _slots_for(self, course: Course, changes: list[ProposedChange]) -> list[tuple[str, str]]:
        if not course.is_lab:
            if len(changes) != 1:
                raise ValidationError(f"Course {course.code} occupies exactly one slot")
            return [(changes[0].day, changes[0].start_time)]

        if len(changes) == 1:
            first = changes[0]
            second_time = next_slot(first.start_time)
            if second_time is None or second_time == LUNCH_SLOT:
                raise ValidationError(
                    f"Lab {course.code} needs two consecutive slots; {first.start_time} has no teaching slot after it"
                )
            return [(first.day, first.start_time), (first.day, second_time)]

        if len(changes) != 2:
            raise ValidationError(f"Lab {course.code} occupies exactly two consecutive slots")
        first, second = sorted(changes, key=lambda change: SLOT_INDEX[change.start_time])
        if (
            first.day != second.day
            or first.room_id != second.room_id
            or next_slot(first.start_time) != second.start_time
        ):
            raise ValidationError(f"Lab {course.code} must use two consecutive slots in the same room on one day")
        return [(first.day, first.start_time), (second.day, second.start_time)]

    def _course_ref(self, timetable: Timetable, course: Course) -> CourseRef:
        for _, entry in timetable.course_entries():
            if entry.course_id == course.id:
                return entry.course.model_copy(deep=True)
        return CourseRef.from_course(course)


def validate(
    timetable: Timetable,
    changes: Sequence[ProposedChange] | PendingChangeSet,
    courses: Sequence[Course],
    rooms: Sequence[Room],
) -> EditOutcome:
    return ManualEditValidator(courses, rooms).validate(timetable, changes)
