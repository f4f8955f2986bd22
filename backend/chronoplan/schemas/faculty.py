from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from chronoplan.schemas.time_grid import DAYS, TIME_SLOTS, normalize_day


class Instructor(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=200)
    # day -> slot -> bool; a False entry blocks the slot
    availability: dict[str, dict[str, bool]] = Field(default_factory=dict)

    model_config = {
        "populate_by_name": True,
        "frozen": True,
    }

    @field_validator("availability")
    @classmethod
    def validate_availability(cls, value: dict[str, dict[str, bool]]) -> dict[str, dict[str, bool]]:
        cleaned: dict[str, dict[str, bool]] = {}
        for raw_day, slots in value.items():
            day = normalize_day(raw_day)
            if day not in DAYS:
                raise ValueError(f"Invalid availability day {raw_day}")
            invalid = [slot for slot in slots if slot not in TIME_SLOTS]
            if invalid:
                raise ValueError(f"Invalid availability slot(s) on {day}: {', '.join(invalid)}")
            cleaned[day] = dict(slots)
        return cleaned

    def is_available(self, day: str, start_time: str) -> bool:
        return self.availability.get(day, {}).get(start_time, True)
