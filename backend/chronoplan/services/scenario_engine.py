from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import logging
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chronoplan.core.exceptions import NotFoundError, ValidationError
from chronoplan.schemas.course import Course
from chronoplan.schemas.faculty import Instructor
from chronoplan.schemas.generator import GenerationConstraints
from chronoplan.schemas.room import Room
from chronoplan.schemas.scenario import Modification, Scenario, ScenarioConstraints, ScenarioMetrics, ScenarioStatus
from chronoplan.schemas.time_grid import DAYS, teaching_slots
from chronoplan.schemas.timetable import Timetable
from chronoplan.services.conflict_service import detect
from chronoplan.services.generator import TimetableGenerator
from chronoplan.services.workload import weekly_hours_by_instructor, workload_percent

logger = logging.getLogger(__name__)

ScenarioLoader = Callable[[str], "Scenario | None"]


@dataclass(frozen=True)
class WorkingSet:
    """Immutable course/room snapshot a scenario generates from."""

    courses: tuple[Course, ...]
    rooms: tuple[Room, ...]

    @classmethod
    def of(cls, courses: Sequence[Course], rooms: Sequence[Room]) -> "WorkingSet":
        return cls(courses=tuple(courses), rooms=tuple(rooms))

    def course(self, course_id: str) -> Course:
        for course in self.courses:
            if course.id == course_id:
                return course
        raise NotFoundError("Course", course_id)

    def room(self, room_id: str) -> Room:
        for room in self.rooms:
            if room.id == room_id:
                return room
        raise NotFoundError("Room", room_id)


def _field_name(model_cls: type[BaseModel], key: str) -> str:
    for name, field in model_cls.model_fields.items():
        if key == name or key == field.alias:
            return name
    raise ValidationError(f"Unknown {model_cls.__name__.lower()} field {key}")


def _revalidate(model_cls: type[BaseModel], instance: BaseModel | None, updates: dict[str, Any]) -> Any:
    data = instance.model_dump() if instance is not None else {}
    for key, value in updates.items():
        data[_field_name(model_cls, key)] = value
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {model_cls.__name__.lower()} data in scenario modification",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


def _pick(changes: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in changes:
            return changes[key]
    raise ValidationError(f"Modification changes must include {keys[0]}")


def apply_modification(working_set: WorkingSet, modification: Modification) -> WorkingSet:
    courses = list(working_set.courses)
    rooms = list(working_set.rooms)
    changes = modification.changes

    if modification.type == "add_course":
        data = dict(changes)
        if modification.target and "id" not in data:
            data["id"] = modification.target
        course = _revalidate(Course, None, data)
        if any(existing.id == course.id for existing in courses):
            raise ValidationError(f"Course {course.id} already exists in the scenario")
        courses.append(course)
    elif modification.type == "remove_course":
        target = working_set.course(modification.target)
        courses = [course for course in courses if course.id != target.id]
    elif modification.type == "change_faculty":
        target = working_set.course(modification.target)
        updates = {"instructor_id": _pick(changes, "instructorId", "instructor_id")}
        if "instructorName" in changes or "instructor_name" in changes:
            updates["instructor_name"] = _pick(changes, "instructorName", "instructor_name")
        else:
            updates["instructor_name"] = None
        updated = _revalidate(Course, target, updates)
        courses = [updated if course.id == target.id else course for course in courses]
    elif modification.type == "change_room":
        target = working_set.room(modification.target)
        updated = _revalidate(Room, target, {key: value for key, value in changes.items() if key != "id"})
        rooms = [updated if room.id == target.id else room for room in rooms]
    elif modification.type == "change_time":
        target = working_set.course(modification.target)
        slots = _pick(changes, "timeSlots", "preferredTimeSlots", "preferred_time_slots")
        updated = _revalidate(Course, target, {"preferred_time_slots": slots})
        courses = [updated if course.id == target.id else course for course in courses]

    return WorkingSet.of(courses, rooms)


def apply_modifications(working_set: WorkingSet, modifications: Sequence[Modification]) -> WorkingSet:
    for modification in modifications:
        working_set = apply_modification(working_set, modification)
    return working_set


def compute_metrics(
    timetable: Timetable,
    working_set: WorkingSet,
    constraints: ScenarioConstraints,
    conflict_count: int,
) -> ScenarioMetrics:
    courses = working_set.courses
    course_entries = timetable.course_entries()

    eligible_rooms = {
        room.id
        for room in working_set.rooms
        if room.is_available and any(room.admits(course) for course in courses)
    }
    slots_per_room = len(DAYS) * len(teaching_slots(constraints.max_daily_hours))
    available = len(eligible_rooms) * slots_per_room
    occupied = sum(1 for _, entry in course_entries if entry.room_id in eligible_rooms)
    room_utilization = occupied / available * 100.0 if available else 0.0

    hours = weekly_hours_by_instructor(timetable)
    instructor_ids = sorted({course.instructor_id for course in courses})
    if instructor_ids:
        faculty_workload = sum(
            workload_percent(hours.get(instructor_id, 0.0), constraints.faculty_max_load)
            for instructor_id in instructor_ids
        ) / len(instructor_ids)
    else:
        faculty_workload = 0.0

    placed_at: dict[str, set[str]] = {}
    for _, entry in course_entries:
        placed_at.setdefault(entry.course_id, set()).add(entry.start_time)
    with_preferences = [course for course in courses if not course.is_lab and course.preferred_time_slots]
    if with_preferences:
        satisfied = sum(
            1
            for course in with_preferences
            if placed_at.get(course.id, set()) & set(course.preferred_time_slots)
        )
        student_satisfaction = satisfied / len(with_preferences) * 100.0
    else:
        student_satisfaction = 100.0

    return ScenarioMetrics(
        conflict_count=conflict_count,
        room_utilization=round(min(100.0, room_utilization), 1),
        faculty_workload=round(faculty_workload, 1),
        student_satisfaction=round(student_satisfaction, 1),
    )


class ScenarioEngine:
    def __init__(
        self,
        scenario_loader: ScenarioLoader | None = None,
        *,
        instructors: Sequence[Instructor] | None = None,
        lab_preferred_slots: Sequence[str] | None = None,
    ) -> None:
        self.scenario_loader = scenario_loader
        self.instructors = list(instructors) if instructors is not None else None
        self.lab_preferred_slots = list(lab_preferred_slots) if lab_preferred_slots is not None else None

    def working_set(
        self,
        scenario: Scenario,
        courses_base: Sequence[Course],
        rooms_base: Sequence[Room],
    ) -> WorkingSet:
        chain: list[Scenario] = [scenario]
        seen = {scenario.id}
        current = scenario
        while current.base_scenario_id:
            if current.base_scenario_id in seen:
                raise ValidationError(f"Scenario {scenario.id} has a cyclic base scenario chain")
            base = self.scenario_loader(current.base_scenario_id) if self.scenario_loader else None
            if base is None:
                raise NotFoundError("Scenario", current.base_scenario_id)
            seen.add(base.id)
            chain.append(base)
            current = base

        working_set = WorkingSet.of(courses_base, rooms_base)
        for item in reversed(chain):
            working_set = apply_modifications(working_set, item.modifications)
        return working_set

    def generate_scenario(
        self,
        scenario: Scenario,
        courses_base: Sequence[Course],
        rooms_base: Sequence[Room],
    ) -> Scenario:
        working_set = self.working_set(scenario, courses_base, rooms_base)
        programs = set(scenario.parameters.programs)
        if programs:
            working_set = WorkingSet.of(
                [course for course in working_set.courses if course.program in programs],
                working_set.rooms,
            )

        scenario_constraints = scenario.parameters.constraints
        constraint_data: dict[str, Any] = {
            "max_daily_hours": scenario_constraints.max_daily_hours,
            "faculty_max_load": scenario_constraints.faculty_max_load,
            "instructors": self.instructors,
        }
        if self.lab_preferred_slots is not None:
            constraint_data["lab_preferred_slots"] = self.lab_preferred_slots
        constraints = GenerationConstraints(**constraint_data)

        result = TimetableGenerator(working_set.courses, working_set.rooms, constraints).generate()
        conflicts = detect(result.timetable)
        metrics = compute_metrics(result.timetable, working_set, scenario_constraints, len(conflicts))
        logger.info(
            "Scenario %s generated: %d conflict(s), utilization %.1f%%, %d unscheduled",
            scenario.name,
            metrics.conflict_count,
            metrics.room_utilization,
            len(result.unscheduled),
        )
        return scenario.model_copy(
            deep=True,
            update={
                "generated_timetable": result.timetable,
                "metrics": metrics,
                "unscheduled_course_ids": [course.id for course in result.unscheduled],
                "status": ScenarioStatus.generated,
            },
        )
