from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from chronoplan.schemas.time_grid import LUNCH_SLOT, SLOT_MINUTES, TIME_SLOTS


class LectureType(str, Enum):
    theory = "theory"
    lab = "lab"


class CourseCategory(str, Enum):
    major = "MAJOR"
    minor = "MINOR"
    sec = "SEC"
    aec = "AEC"
    vac = "VAC"
    core = "CORE"
    other = "OTHER"


class Program(str, Enum):
    fyup = "FYUP"
    bed = "B.Ed."
    med = "M.Ed."
    itep = "ITEP"


class Course(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    instructor_id: str = Field(alias="instructorId", min_length=1, max_length=36)
    instructor_name: str | None = Field(default=None, alias="instructorName", max_length=200)
    duration_minutes: int = Field(alias="durationMinutes")
    lecture_type: LectureType = Field(alias="lectureType")
    capacity: int = Field(ge=0, le=2000)
    preferred_time_slots: list[str] = Field(default_factory=list, alias="preferredTimeSlots")
    year: int = Field(ge=1, le=4)
    branch: str = Field(min_length=1, max_length=200)
    division: str = Field(min_length=1, max_length=50)
    credits: int = Field(default=0, ge=0, le=40)
    category: CourseCategory = CourseCategory.core
    program: Program = Program.fyup

    model_config = {
        "populate_by_name": True,
        "frozen": True,
    }

    @field_validator("preferred_time_slots")
    @classmethod
    def validate_preferred_time_slots(cls, value: list[str]) -> list[str]:
        cleaned: list[str] = []
        for slot in value:
            slot = slot.strip()
            if slot not in TIME_SLOTS:
                raise ValueError(f"Unknown preferred time slot {slot}")
            if slot == LUNCH_SLOT:
                raise ValueError(f"{LUNCH_SLOT} is reserved for lunch and cannot be preferred")
            if slot not in cleaned:
                cleaned.append(slot)
        return cleaned

    @model_validator(mode="after")
    def validate_duration(self) -> "Course":
        if self.duration_minutes not in (SLOT_MINUTES, 2 * SLOT_MINUTES):
            raise ValueError("durationMinutes must be 60 or 120")
        if self.lecture_type == LectureType.lab and self.duration_minutes != 2 * SLOT_MINUTES:
            raise ValueError("Lab courses must run for 120 minutes")
        if self.lecture_type == LectureType.theory and self.duration_minutes != SLOT_MINUTES:
            raise ValueError("Theory courses must run for 60 minutes")
        return self

    @property
    def is_lab(self) -> bool:
        return self.lecture_type == LectureType.lab

    @property
    def weekly_hours(self) -> float:
        return self.duration_minutes / 60

    @property
    def cohort(self) -> tuple[int, str, str]:
        return (self.year, self.branch, self.division)
