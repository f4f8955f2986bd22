import pytest

from chronoplan.core.exceptions import ValidationError
from chronoplan.schemas.conflict import Conflict, RoomChange, TimeChange
from chronoplan.services.conflict_service import detect
from chronoplan.services.repositories import InMemoryRoomRepository
from chronoplan.services.resolver import ConflictResolver, resolve

from conftest import build_timetable, make_course, make_room, placed


@pytest.fixture
def theory_rooms():
    return [make_room("r1"), make_room("r2")]


@pytest.fixture
def three_conflict_timetable(theory_rooms):
    r1, r2 = theory_rooms
    return build_timetable(
        # Monday 09:00: room clash, r2 is free
        placed(make_course("c1", "f1"), r1, "Monday", "09:00"),
        placed(make_course("c2", "f2"), r1, "Monday", "09:00"),
        # Tuesday 09:00: instructor clash, another slot is free
        placed(make_course("c3", "f3"), r1, "Tuesday", "09:00"),
        placed(make_course("c4", "f3"), r2, "Tuesday", "09:00"),
        # Wednesday 09:00: room clash with every room taken
        placed(make_course("c5", "f5"), r1, "Wednesday", "09:00"),
        placed(make_course("c6", "f6"), r1, "Wednesday", "09:00"),
        placed(make_course("c7", "f7"), r2, "Wednesday", "09:00"),
    )


def test_resolve_fixes_what_it_can_and_reports_the_rest(three_conflict_timetable, theory_rooms):
    conflicts = detect(three_conflict_timetable)
    assert len(conflicts) == 3

    result = resolve(three_conflict_timetable, conflicts, theory_rooms)

    assert len(result.resolved) == 2
    room_fix, time_fix = result.resolved
    assert room_fix.entry_index == 1
    assert room_fix.resolution == RoomChange(room_id="r2")
    assert time_fix.entry_index == 4
    assert time_fix.resolution == TimeChange(day="Monday", start_time="10:00")

    assert len(result.unresolved) == 1
    remaining = result.unresolved[0]
    assert (remaining.type, remaining.day, remaining.start_time) == ("room", "Wednesday", "09:00")


def test_resolve_is_monotonic_and_does_not_reintroduce_fixed_conflicts(three_conflict_timetable, theory_rooms):
    conflicts = detect(three_conflict_timetable)

    result = resolve(three_conflict_timetable, conflicts, theory_rooms)
    after = detect(result.timetable)

    assert len(result.unresolved) <= len(conflicts)
    fixed = {(item.conflict.type, item.conflict.day, item.conflict.start_time) for item in result.resolved}
    assert not fixed & {(conflict.type, conflict.day, conflict.start_time) for conflict in after}
    assert [conflict.model_dump() for conflict in after] == [conflict.model_dump() for conflict in result.unresolved]


def test_resolve_does_not_mutate_input(three_conflict_timetable, theory_rooms):
    before = three_conflict_timetable.model_dump()

    resolve(three_conflict_timetable, detect(three_conflict_timetable), theory_rooms)

    assert three_conflict_timetable.model_dump() == before


def test_instructor_conflict_on_lab_moves_the_whole_block():
    lab_a, lab_b = make_room("lab1", "lab"), make_room("lab2", "lab")
    first = make_course("l1", "f3", lectureType="lab")
    second = make_course("l2", "f3", lectureType="lab", division="B")
    timetable = build_timetable(
        placed(first, lab_a, "Monday", "15:00", is_lab_first=True),
        placed(first, lab_a, "Monday", "16:00", is_lab_second=True),
        placed(second, lab_b, "Monday", "15:00", is_lab_first=True),
        placed(second, lab_b, "Monday", "16:00", is_lab_second=True),
    )
    conflicts = detect(timetable)
    assert [conflict.type for conflict in conflicts] == ["instructor", "instructor"]

    result = resolve(timetable, conflicts, [lab_a, lab_b])

    assert [item.resolution for item in result.resolved] == [TimeChange(day="Monday", start_time="09:00")]
    assert result.unresolved == []
    moved = [entry for entry in result.timetable.entries if entry.course_id == "l2"]
    assert sorted((entry.start_time, entry.is_lab_first, entry.is_lab_second) for entry in moved) == [
        ("09:00", True, False),
        ("10:00", False, True),
    ]
    assert detect(result.timetable) == []


def test_time_moves_keep_the_cohort_free():
    r1, r2, r3 = make_room("r1"), make_room("r2"), make_room("r3")
    courses = [make_course("c1", "f1"), make_course("c2", "f1"), make_course("c3", "f9")]
    timetable = build_timetable(
        placed(courses[0], r1, "Monday", "09:00"),
        placed(courses[1], r2, "Monday", "09:00"),
        placed(courses[2], r3, "Monday", "10:00"),
        year=1,
        branch="CSE",
        division="A",
    )
    resolver = ConflictResolver(InMemoryRoomRepository([r1, r2, r3]), courses=courses)

    result = resolver.resolve(timetable, detect(timetable))

    assert [item.resolution for item in result.resolved] == [TimeChange(day="Monday", start_time="11:00")]


def test_resolve_rejects_out_of_range_indices(three_conflict_timetable, theory_rooms):
    course = three_conflict_timetable.entries[0].course
    bogus = Conflict(
        type="room",
        day="Monday",
        start_time="09:00",
        entry_indices=(0, 99),
        courses=[course, course],
    )

    with pytest.raises(ValidationError):
        resolve(three_conflict_timetable, [bogus], theory_rooms)


def test_room_clash_cleared_by_the_instructor_move_is_not_left_unresolved(theory_rooms):
    r1, _ = theory_rooms
    timetable = build_timetable(
        placed(make_course("c1", "f1"), r1, "Monday", "09:00"),
        placed(make_course("c2", "f1"), r1, "Monday", "09:00"),
    )
    conflicts = detect(timetable)
    assert [conflict.type for conflict in conflicts] == ["room", "instructor"]

    result = resolve(timetable, conflicts, theory_rooms)

    assert [item.resolution for item in result.resolved] == [TimeChange(day="Monday", start_time="10:00")]
    assert result.unresolved == []
    assert detect(result.timetable) == []


def test_room_candidates_keep_the_capacity_class_without_course_records():
    big, tiny, hall = make_room("big", capacity=120), make_room("tiny", capacity=10), make_room("hall", capacity=150)
    timetable = build_timetable(
        placed(make_course("c1", "f1", capacity=100), big, "Monday", "09:00"),
        placed(make_course("c2", "f2", capacity=100), big, "Monday", "09:00"),
    )

    result = resolve(timetable, detect(timetable), [big, tiny, hall])

    assert [item.resolution for item in result.resolved] == [RoomChange(room_id="hall")]

    without_hall = resolve(timetable, detect(timetable), [big, tiny])

    assert without_hall.resolved == []
    assert len(without_hall.unresolved) == 1
