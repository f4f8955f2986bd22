import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chronoplan.schemas.conflict import Resolution, RoomChange, TimeChange
from chronoplan.schemas.faculty import Instructor
from chronoplan.schemas.time_grid import lab_slot_pairs, next_slot, teaching_slots
from chronoplan.schemas.timetable import ScheduleEntry

from conftest import make_course, make_room, placed


def test_lab_and_theory_durations_are_enforced():
    with pytest.raises(PydanticValidationError):
        make_course("l1", lectureType="lab", durationMinutes=60)
    with pytest.raises(PydanticValidationError):
        make_course("c1", durationMinutes=120)
    assert make_course("l1", lectureType="lab").weekly_hours == 2


def test_preferred_slots_must_be_grid_slots_outside_lunch():
    with pytest.raises(PydanticValidationError):
        make_course("c1", preferredTimeSlots=["12:00"])
    with pytest.raises(PydanticValidationError):
        make_course("c1", preferredTimeSlots=["08:00"])
    assert make_course("c1", preferredTimeSlots=["10:00", "10:00", "09:00"]).preferred_time_slots == ["10:00", "09:00"]


def test_room_compatibility_rules():
    course = make_course("c1", year=2, branch="ECE", capacity=50)

    assert make_room("r1", department="", allowedYears=[]).admits(course)
    assert not make_room("r2", department="CSE").admits(course)
    assert not make_room("r3", isAvailable=False).admits(course)
    assert make_room("r4", capacity=50).fits(course)
    assert not make_room("r5", capacity=49).fits(course)
    assert not make_room("lab1", "lab", capacity=100).fits(course)


def test_schedule_entry_wire_format():
    entry = placed(make_course("c1", "f1"), make_room("r1"), "Mon", "09:00")

    assert entry.model_dump(by_alias=True) == {
        "day": "Monday",
        "startTime": "09:00",
        "course": {
            "id": "c1",
            "name": "Course c1",
            "code": "C1",
            "instructor": {"id": "f1", "name": "Prof f1"},
            "lectureType": "theory",
        },
        "room": {"id": "r1", "name": "Room r1"},
        "isFree": False,
        "isLabFirst": False,
        "isLabSecond": False,
    }


def test_schedule_entry_shape_is_checked():
    with pytest.raises(PydanticValidationError):
        ScheduleEntry(day="Monday", start_time="09:00")
    with pytest.raises(PydanticValidationError):
        ScheduleEntry(day="Sunday", start_time="09:00", is_free=True)
    assert ScheduleEntry.lunch("Friday").bucket == ("Friday", "12:00")


def test_resolution_is_discriminated_by_kind():
    adapter = TypeAdapter(Resolution)

    assert adapter.validate_python({"kind": "room", "roomId": "r2"}) == RoomChange(room_id="r2")
    assert adapter.validate_python({"kind": "time", "day": "Tuesday", "startTime": "10:00"}) == TimeChange(
        day="Tuesday", start_time="10:00"
    )
    with pytest.raises(PydanticValidationError):
        adapter.validate_python({"kind": "swap"})


def test_time_grid_helpers():
    assert teaching_slots() == ("09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00")
    assert teaching_slots(3) == ("09:00", "10:00", "11:00")
    assert ("11:00", "13:00") not in lab_slot_pairs()
    assert lab_slot_pairs()[-1] == ("15:00", "16:00")
    assert next_slot("16:00") is None


def test_instructor_availability_defaults_to_available():
    instructor = Instructor(id="f1", name="Prof f1", availability={"Mon": {"09:00": False}})

    assert not instructor.is_available("Monday", "09:00")
    assert instructor.is_available("Monday", "10:00")
    with pytest.raises(PydanticValidationError):
        Instructor(id="f2", name="Prof f2", availability={"Monday": {"12:30": False}})
