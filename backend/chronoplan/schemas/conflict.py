from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from chronoplan.schemas.timetable import CourseRef, Timetable


class Conflict(BaseModel):
    type: Literal["room", "instructor"]
    day: str
    start_time: str = Field(alias="startTime")
    entry_indices: tuple[int, int] = Field(alias="entryIndices")
    courses: list[CourseRef]
    message: str = ""

    model_config = {"populate_by_name": True}

    @property
    def mobile_index(self) -> int:
        # The entry later in timetable order is the one that moves.
        return max(self.entry_indices)


class RoomChange(BaseModel):
    kind: Literal["room"] = "room"
    room_id: str = Field(alias="roomId")

    model_config = {"populate_by_name": True}


class TimeChange(BaseModel):
    kind: Literal["time"] = "time"
    day: str
    start_time: str = Field(alias="startTime")

    model_config = {"populate_by_name": True}


Resolution = Annotated[Union[RoomChange, TimeChange], Field(discriminator="kind")]


class ResolvedConflict(BaseModel):
    conflict: Conflict
    entry_index: int = Field(alias="entryIndex")
    resolution: Resolution

    model_config = {"populate_by_name": True}


class ResolveResult(BaseModel):
    timetable: Timetable
    resolved: list[ResolvedConflict] = Field(default_factory=list)
    unresolved: list[Conflict] = Field(default_factory=list)
