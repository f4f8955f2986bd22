import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chronoplan.core.config import Settings
from chronoplan.db.bootstrap import init_db
from chronoplan.schemas.course import Course
from chronoplan.schemas.room import Room
from chronoplan.schemas.time_grid import DAYS
from chronoplan.schemas.timetable import CourseRef, RoomRef, ScheduleEntry, Timetable, sort_entries


def make_course(course_id: str, instructor_id: str = "f1", **overrides) -> Course:
    data = {
        "id": course_id,
        "code": course_id.upper(),
        "name": f"Course {course_id}",
        "instructorId": instructor_id,
        "instructorName": f"Prof {instructor_id}",
        "durationMinutes": 60,
        "lectureType": "theory",
        "capacity": 40,
        "year": 1,
        "branch": "CSE",
        "division": "A",
    }
    if overrides.get("lectureType", overrides.get("lecture_type")) == "lab":
        data["durationMinutes"] = 120
    data.update(overrides)
    return Course.model_validate(data)


def make_room(room_id: str, room_type: str = "classroom", **overrides) -> Room:
    data = {"id": room_id, "name": f"Room {room_id}", "capacity": 60, "type": room_type}
    data.update(overrides)
    return Room.model_validate(data)


def placed(course: Course, room: Room, day: str, start_time: str, **flags) -> ScheduleEntry:
    return ScheduleEntry(
        day=day,
        start_time=start_time,
        course=CourseRef.from_course(course),
        room=RoomRef.from_room(room),
        **flags,
    )


def build_timetable(*entries: ScheduleEntry, timetable_id: str = "tt-test", **scope) -> Timetable:
    all_entries = [ScheduleEntry.lunch(day) for day in DAYS] + list(entries)
    return Timetable(id=timetable_id, entries=sort_entries(all_entries), **scope)


def assert_timetable_invariants(timetable: Timetable) -> None:
    rooms: set[tuple[str, str, str]] = set()
    instructors: set[tuple[str, str, str]] = set()
    for _, entry in timetable.course_entries():
        assert entry.start_time != "12:00"
        room_key = (entry.day, entry.start_time, entry.room_id)
        instructor_key = (entry.day, entry.start_time, entry.instructor_id)
        assert room_key not in rooms
        assert instructor_key not in instructors
        rooms.add(room_key)
        instructors.add(instructor_key)
    for day in DAYS:
        lunch = [entry for entry in timetable.entries if entry.bucket == (day, "12:00")]
        assert lunch and all(entry.is_free for entry in lunch)


@pytest.fixture
def settings():
    return Settings(_env_file=None, database_url="sqlite+pysqlite://")


@pytest.fixture
def rooms():
    return [
        make_room("r1"),
        make_room("r2", capacity=120, type="lecture-hall"),
        make_room("lab1", "lab", capacity=30),
    ]


@pytest.fixture
def courses():
    return [
        make_course("c1", "f1", preferredTimeSlots=["10:00"]),
        make_course("c2", "f2"),
        make_course("c3", "f1"),
        make_course("l1", "f3", lectureType="lab", capacity=25),
    ]


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestingSessionLocal
    engine.dispose()
