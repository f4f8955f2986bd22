from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from chronoplan.schemas.course import Course, LectureType
from chronoplan.schemas.room import Room
from chronoplan.schemas.time_grid import DAYS, LUNCH_SLOT, TIME_SLOTS, bucket_sort_key, normalize_day


class InstructorRef(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    name: str = ""


class CourseRef(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    name: str
    code: str
    instructor: InstructorRef
    lecture_type: LectureType = Field(alias="lectureType")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_course(cls, course: Course) -> "CourseRef":
        return cls(
            id=course.id,
            name=course.name,
            code=course.code,
            instructor=InstructorRef(id=course.instructor_id, name=course.instructor_name or ""),
            lecture_type=course.lecture_type,
        )


class RoomRef(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    name: str

    @classmethod
    def from_room(cls, room: Room) -> "RoomRef":
        return cls(id=room.id, name=room.name)


class ScheduleEntry(BaseModel):
    day: str
    start_time: str = Field(alias="startTime")
    course: CourseRef | None = None
    room: RoomRef | None = None
    is_free: bool = Field(default=False, alias="isFree")
    is_lab_first: bool = Field(default=False, alias="isLabFirst")
    is_lab_second: bool = Field(default=False, alias="isLabSecond")

    model_config = {"populate_by_name": True}

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str) -> str:
        day = normalize_day(value)
        if day not in DAYS:
            raise ValueError("Invalid day value")
        return day

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        if value not in TIME_SLOTS:
            raise ValueError(f"Start time must be one of {', '.join(TIME_SLOTS)}")
        return value

    @model_validator(mode="after")
    def validate_shape(self) -> "ScheduleEntry":
        if self.is_free:
            if self.course is not None:
                raise ValueError("A free entry cannot carry a course")
        elif self.course is None:
            raise ValueError("A non-free entry requires a course")
        if self.is_lab_first and self.is_lab_second:
            raise ValueError("An entry cannot be both the first and second half of a lab")
        return self

    @classmethod
    def free(cls, day: str, start_time: str) -> "ScheduleEntry":
        return cls(day=day, start_time=start_time, is_free=True)

    @classmethod
    def lunch(cls, day: str) -> "ScheduleEntry":
        return cls.free(day, LUNCH_SLOT)

    @property
    def bucket(self) -> tuple[str, str]:
        return (self.day, self.start_time)

    @property
    def course_id(self) -> str | None:
        return self.course.id if self.course else None

    @property
    def room_id(self) -> str | None:
        return self.room.id if self.room else None

    @property
    def instructor_id(self) -> str | None:
        return self.course.instructor.id if self.course else None

    @property
    def is_lab(self) -> bool:
        return self.course is not None and self.course.lecture_type == LectureType.lab


class Timetable(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    year: int | None = Field(default=None, ge=1, le=4)
    branch: str | None = None
    division: str | None = None
    entries: list[ScheduleEntry] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    version: int = Field(default=0, ge=0)

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }

    @property
    def scope(self) -> str:
        return scope_label(self.year, self.branch, self.division)

    def course_entries(self) -> list[tuple[int, ScheduleEntry]]:
        return [(index, entry) for index, entry in enumerate(self.entries) if not entry.is_free]

    def lab_partner(self, index: int) -> int | None:
        """Index of the other half of the lab block that entry `index` belongs to."""
        entry = self.entries[index]
        if not entry.is_lab or not (entry.is_lab_first or entry.is_lab_second):
            return None
        for other_index, other in enumerate(self.entries):
            if other_index == index or other.course_id != entry.course_id or other.day != entry.day:
                continue
            if entry.is_lab_first and other.is_lab_second:
                return other_index
            if entry.is_lab_second and other.is_lab_first:
                return other_index
        return None


def scope_label(year: int | None, branch: str | None, division: str | None) -> str:
    if year is None and branch is None and division is None:
        return "all cohorts"
    return f"year {year} {branch} {division}"


def sort_entries(entries: list[ScheduleEntry]) -> list[ScheduleEntry]:
    """Canonical order: by day, then slot; ties keep their relative order."""
    return sorted(entries, key=lambda entry: bucket_sort_key(entry.day, entry.start_time))
