from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from chronoplan.schemas.course import Course, LectureType

ALL_DEPARTMENTS = "All"


class RoomType(str, Enum):
    classroom = "classroom"
    lab = "lab"
    lecture_hall = "lecture-hall"


THEORY_ROOM_TYPES: tuple[RoomType, ...] = (RoomType.classroom, RoomType.lecture_hall)
LAB_ROOM_TYPES: tuple[RoomType, ...] = (RoomType.lab,)


def room_types_for(lecture_type: LectureType) -> tuple[RoomType, ...]:
    return LAB_ROOM_TYPES if lecture_type == LectureType.lab else THEORY_ROOM_TYPES


class Room(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(ge=1, le=2000)
    type: RoomType
    department: str = Field(default=ALL_DEPARTMENTS, max_length=200)
    allowed_years: list[int] = Field(default_factory=list, alias="allowedYears")
    is_available: bool = Field(default=True, alias="isAvailable")

    model_config = {
        "populate_by_name": True,
        "frozen": True,
    }

    @field_validator("allowed_years")
    @classmethod
    def validate_allowed_years(cls, value: list[int]) -> list[int]:
        invalid = [year for year in value if year < 1 or year > 4]
        if invalid:
            raise ValueError(f"Invalid allowed year(s): {', '.join(str(year) for year in invalid)}")
        return sorted(set(value))

    def allows_year(self, year: int | None) -> bool:
        return year is None or not self.allowed_years or year in self.allowed_years

    def allows_department(self, department: str | None) -> bool:
        own = self.department.strip()
        return department is None or not own or own == ALL_DEPARTMENTS or own == department

    def admits(self, course: Course) -> bool:
        """Availability, year and department rules; type and capacity are checked separately."""
        return self.is_available and self.allows_year(course.year) and self.allows_department(course.branch)

    def fits(self, course: Course) -> bool:
        return self.type in room_types_for(course.lecture_type) and self.capacity >= course.capacity
