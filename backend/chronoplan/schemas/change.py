from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from chronoplan.schemas.conflict import Conflict
from chronoplan.schemas.time_grid import DAYS, TIME_SLOTS, normalize_day
from chronoplan.schemas.timetable import Timetable


class ProposedChange(BaseModel):
    day: str
    start_time: str = Field(
        validation_alias=AliasChoices("start_time", "startTime", "timeSlot"),
        serialization_alias="startTime",
    )
    course_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("course_id", "courseId"),
        serialization_alias="courseId",
    )
    room_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("room_id", "roomId"),
        serialization_alias="roomId",
    )

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
            raise ValueError(f"Time slot must be one of {', '.join(TIME_SLOTS)}")
        return value

    @field_validator("course_id", "room_id")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        trimmed = value.strip()
        return trimmed or None

    @property
    def is_deletion(self) -> bool:
        return self.course_id is None


class PendingChangeSet(BaseModel):
    """Local edits collected by the drag-and-drop editor, submitted in one piece."""

    schedule_id: str = Field(
        validation_alias=AliasChoices("schedule_id", "scheduleId"),
        serialization_alias="scheduleId",
    )
    changes: list[ProposedChange] = Field(default_factory=list)

    def move(self, course_id: str, day: str, start_time: str, room_id: str) -> "PendingChangeSet":
        self.changes.append(ProposedChange(day=day, start_time=start_time, course_id=course_id, room_id=room_id))
        return self

    def delete(self, day: str, start_time: str, room_id: str | None = None) -> "PendingChangeSet":
        self.changes.append(ProposedChange(day=day, start_time=start_time, room_id=room_id))
        return self

    def swap(
        self,
        first: tuple[str, str, str, str],
        second: tuple[str, str, str, str],
    ) -> "PendingChangeSet":
        """Each side is (course_id, day, start_time, room_id); the courses trade places."""
        first_course, first_day, first_time, first_room = first
        second_course, second_day, second_time, second_room = second
        self.move(first_course, second_day, second_time, second_room)
        self.move(second_course, first_day, first_time, first_room)
        return self


class EditAccepted(BaseModel):
    status: Literal["accepted"] = "accepted"
    timetable: Timetable


class EditRejected(BaseModel):
    status: Literal["rejected"] = "rejected"
    message: str
    conflicts: list[Conflict]


EditOutcome = EditAccepted | EditRejected
