from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from chronoplan.schemas.course import Course
from chronoplan.schemas.faculty import Instructor
from chronoplan.schemas.time_grid import LUNCH_SLOT, TIME_SLOTS, teaching_slots
from chronoplan.schemas.timetable import Timetable


class GenerationConstraints(BaseModel):
    max_daily_hours: int | None = Field(default=None, alias="maxDailyHours", ge=1, le=len(TIME_SLOTS))
    faculty_max_load: int | None = Field(default=None, alias="facultyMaxLoad", ge=1, le=200)
    lab_preferred_slots: list[str] = Field(default_factory=lambda: ["15:00", "16:00"], alias="labPreferredSlots")
    instructors: list[Instructor] | None = None

    model_config = {"populate_by_name": True}

    @field_validator("lab_preferred_slots")
    @classmethod
    def validate_lab_preferred_slots(cls, value: list[str]) -> list[str]:
        invalid = [slot for slot in value if slot not in TIME_SLOTS or slot == LUNCH_SLOT]
        if invalid:
            raise ValueError(f"Invalid lab slot(s): {', '.join(invalid)}")
        return value

    def eligible_slots(self) -> tuple[str, ...]:
        return teaching_slots(self.max_daily_hours)


class GenerationResult(BaseModel):
    timetable: Timetable
    unscheduled: list[Course] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.unscheduled)
