from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from chronoplan.schemas.course import Program
from chronoplan.schemas.timetable import Timetable


class ScenarioStatus(str, Enum):
    draft = "draft"
    generated = "generated"
    approved = "approved"
    archived = "archived"


ModificationType = Literal["add_course", "remove_course", "change_faculty", "change_room", "change_time"]


class ScenarioConstraints(BaseModel):
    max_daily_hours: int = Field(default=8, alias="maxDailyHours", ge=1, le=8)
    lunch_break_duration: int = Field(default=60, alias="lunchBreakDuration", ge=0, le=180)
    faculty_max_load: int = Field(default=20, alias="facultyMaxLoad", ge=1, le=200)
    room_utilization: int = Field(default=85, alias="roomUtilization", ge=0, le=100)

    model_config = {"populate_by_name": True}


class ScenarioParameters(BaseModel):
    semester: str = "Fall 2024"
    academic_year: str = Field(default="2024-25", alias="academicYear")
    programs: list[Program] = Field(default_factory=list)
    constraints: ScenarioConstraints = Field(default_factory=ScenarioConstraints)

    model_config = {"populate_by_name": True}


class Modification(BaseModel):
    type: ModificationType
    target: str = Field(default="", max_length=64)
    changes: dict[str, Any] = Field(default_factory=dict)


class ScenarioMetrics(BaseModel):
    conflict_count: int = Field(default=0, alias="conflictCount", ge=0)
    room_utilization: float = Field(default=0.0, alias="roomUtilization", ge=0.0, le=100.0)
    faculty_workload: float = Field(default=0.0, alias="facultyWorkload", ge=0.0, le=100.0)
    student_satisfaction: float = Field(default=0.0, alias="studentSatisfaction", ge=0.0, le=100.0)

    model_config = {"populate_by_name": True}


class ScenarioCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    base_scenario_id: str | None = Field(default=None, alias="baseScenarioId")
    parameters: ScenarioParameters = Field(default_factory=ScenarioParameters)
    modifications: list[Modification] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Scenario name cannot be blank")
        return trimmed


class Scenario(ScenarioCreate):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    status: ScenarioStatus = ScenarioStatus.draft
    generated_timetable: Timetable | None = Field(default=None, alias="generatedTimetable")
    metrics: ScenarioMetrics | None = None
    unscheduled_course_ids: list[str] = Field(default_factory=list, alias="unscheduledCourseIds")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
