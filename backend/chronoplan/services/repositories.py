"""Collaborator interfaces consumed by the engine, plus in-memory implementations.

The engine never talks to a database itself; these protocols are the seam.
The in-memory classes back the test-suite and embedded use, while
`chronoplan.services.stores` provides SQL-backed timetable and scenario stores.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Protocol

from chronoplan.core.exceptions import ConcurrentModificationError
from chronoplan.schemas.course import Course
from chronoplan.schemas.room import Room, RoomType
from chronoplan.schemas.scenario import Scenario
from chronoplan.schemas.timetable import Timetable, scope_label


class RoomRepository(Protocol):
    def all_rooms(self) -> list[Room]: ...

    def find_by_criteria(
        self,
        room_type: RoomType | None = None,
        year: int | None = None,
        department: str | None = None,
    ) -> list[Room]: ...

    def find_available(
        self,
        room_types: Iterable[RoomType],
        *,
        min_capacity: int = 0,
        year: int | None = None,
        department: str | None = None,
    ) -> list[Room]: ...


class CourseRepository(Protocol):
    def all_courses(self) -> list[Course]: ...

    def all_for_scope(self, year: int, branch: str, division: str) -> list[Course]: ...


class TimetableStore(Protocol):
    def load(self, year: int, branch: str, division: str) -> Timetable | None: ...

    def load_by_id(self, timetable_id: str) -> Timetable | None: ...

    def save(self, timetable: Timetable, expected_version: int | None = None) -> Timetable: ...

    def history(self, year: int, branch: str, division: str) -> list[Timetable]: ...


class ScenarioStore(Protocol):
    def get(self, scenario_id: str) -> Scenario | None: ...

    def save(self, scenario: Scenario) -> Scenario: ...

    def list_scenarios(self) -> list[Scenario]: ...


class InMemoryRoomRepository:
    def __init__(self, rooms: Sequence[Room]) -> None:
        self._rooms = list(rooms)

    def all_rooms(self) -> list[Room]:
        return list(self._rooms)

    def find_by_criteria(
        self,
        room_type: RoomType | None = None,
        year: int | None = None,
        department: str | None = None,
    ) -> list[Room]:
        return [
            room
            for room in self._rooms
            if room.is_available
            and (room_type is None or room.type == room_type)
            and room.allows_year(year)
            and room.allows_department(department)
        ]

    def find_available(
        self,
        room_types: Iterable[RoomType],
        *,
        min_capacity: int = 0,
        year: int | None = None,
        department: str | None = None,
    ) -> list[Room]:
        wanted = set(room_types)
        return [
            room
            for room in self._rooms
            if room.is_available
            and room.type in wanted
            and room.capacity >= min_capacity
            and room.allows_year(year)
            and room.allows_department(department)
        ]


class InMemoryCourseRepository:
    def __init__(self, courses: Sequence[Course]) -> None:
        self._courses = list(courses)

    def all_courses(self) -> list[Course]:
        return list(self._courses)

    def all_for_scope(self, year: int, branch: str, division: str) -> list[Course]:
        return [
            course
            for course in self._courses
            if course.year == year and course.branch == branch and course.division == division
        ]


class InMemoryTimetableStore:
    def __init__(self) -> None:
        self._versions: dict[tuple[int | None, str | None, str | None], list[Timetable]] = defaultdict(list)

    def load(self, year: int, branch: str, division: str) -> Timetable | None:
        versions = self._versions.get((year, branch, division))
        if not versions:
            return None
        return versions[-1].model_copy(deep=True)

    def load_by_id(self, timetable_id: str) -> Timetable | None:
        for versions in self._versions.values():
            if versions and versions[-1].id == timetable_id:
                return versions[-1].model_copy(deep=True)
        return None

    def save(self, timetable: Timetable, expected_version: int | None = None) -> Timetable:
        key = (timetable.year, timetable.branch, timetable.division)
        versions = self._versions[key]
        current = versions[-1].version if versions else 0
        if expected_version is not None and expected_version != current:
            raise ConcurrentModificationError(scope_label(*key), expected_version, current)
        stored = timetable.model_copy(
            deep=True,
            update={
                "version": current + 1,
                "created_at": timetable.created_at or datetime.now(timezone.utc),
            },
        )
        versions.append(stored)
        return stored.model_copy(deep=True)

    def history(self, year: int, branch: str, division: str) -> list[Timetable]:
        return [item.model_copy(deep=True) for item in self._versions.get((year, branch, division), [])]


class InMemoryScenarioStore:
    def __init__(self) -> None:
        self._scenarios: dict[str, Scenario] = {}

    def get(self, scenario_id: str) -> Scenario | None:
        scenario = self._scenarios.get(scenario_id)
        return scenario.model_copy(deep=True) if scenario else None

    def save(self, scenario: Scenario) -> Scenario:
        self._scenarios[scenario.id] = scenario.model_copy(deep=True)
        return scenario

    def list_scenarios(self) -> list[Scenario]:
        return [item.model_copy(deep=True) for item in self._scenarios.values()]
