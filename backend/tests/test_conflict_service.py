import pytest

from chronoplan.services.conflict_service import ConflictService, available_slots, detect, detect_in_buckets

from conftest import build_timetable, make_course, make_room, placed


@pytest.fixture
def shared_room_timetable():
    room = make_room("R1")
    first = make_course("c1", "f1")
    second = make_course("c2", "f2")
    return build_timetable(
        placed(first, room, "Monday", "09:00"),
        placed(second, room, "Monday", "09:00"),
    )


def test_detect_room_conflict(shared_room_timetable):
    conflicts = detect(shared_room_timetable)

    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.type == "room"
    assert (conflict.day, conflict.start_time) == ("Monday", "09:00")
    assert conflict.entry_indices == (0, 1)
    assert [course.id for course in conflict.courses] == ["c1", "c2"]
    assert conflict.message == (
        "Room Room R1 is scheduled for two different courses at the same time (Monday 09:00)"
    )


def test_detect_instructor_conflict():
    first = make_course("c1", "f1")
    second = make_course("c2", "f1", division="B")
    timetable = build_timetable(
        placed(first, make_room("r1"), "Tuesday", "10:00"),
        placed(second, make_room("r2"), "Tuesday", "10:00"),
    )

    conflicts = detect(timetable)

    assert [conflict.type for conflict in conflicts] == ["instructor"]
    assert "Prof f1" in conflicts[0].message


def test_room_conflict_is_reported_before_instructor_conflict():
    room = make_room("r1")
    timetable = build_timetable(
        placed(make_course("c1", "f1"), room, "Monday", "09:00"),
        placed(make_course("c2", "f1"), room, "Monday", "09:00"),
    )

    assert [conflict.type for conflict in detect(timetable)] == ["room", "instructor"]


def test_detect_is_idempotent_and_ordered_by_grid():
    room = make_room("r1")
    timetable = build_timetable(
        placed(make_course("c1", "f1"), room, "Wednesday", "14:00"),
        placed(make_course("c2", "f2"), room, "Wednesday", "14:00"),
        placed(make_course("c3", "f3"), room, "Monday", "11:00"),
        placed(make_course("c4", "f4"), room, "Monday", "11:00"),
    )

    first = detect(timetable)
    second = detect(timetable)

    assert [conflict.model_dump() for conflict in first] == [conflict.model_dump() for conflict in second]
    assert [(conflict.day, conflict.start_time) for conflict in first] == [
        ("Monday", "11:00"),
        ("Wednesday", "14:00"),
    ]


def test_free_entries_never_conflict():
    timetable = build_timetable()

    assert detect(timetable) == []


def test_detect_in_buckets_limits_the_scan(shared_room_timetable):
    assert detect_in_buckets(shared_room_timetable, [("Tuesday", "09:00")]) == []
    assert len(detect_in_buckets(shared_room_timetable, [("Monday", "09:00")])) == 1


def test_available_slots_exclude_lunch_and_occupied_slots(shared_room_timetable):
    slots = available_slots(shared_room_timetable)

    assert ("Monday", "09:00") not in slots
    assert all(start_time != "12:00" for _, start_time in slots)
    assert len(slots) == 5 * 7 - 1
    assert slots[0] == ("Monday", "10:00")
    assert ConflictService(shared_room_timetable).available_slots() == slots
