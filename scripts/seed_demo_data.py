"""Seed a demo department and generate its timetables into the configured database.

Run:
  PYTHONPATH=backend python scripts/seed_demo_data.py
"""

from __future__ import annotations

import logging
import os

from chronoplan.core.config import get_settings
from chronoplan.db.bootstrap import init_db
from chronoplan.db.session import SessionLocal
from chronoplan.schemas.course import Course
from chronoplan.schemas.room import Room
from chronoplan.services.engine import TimetableEngine
from chronoplan.services.repositories import InMemoryCourseRepository, InMemoryRoomRepository
from chronoplan.services.stores import SqlScenarioStore, SqlTimetableStore

BRANCH = os.getenv("SEED_BRANCH", "CSE").strip() or "CSE"
DIVISIONS = ["A", "B"]
YEARS = [1, 2]

ROOMS = [
    {"id": "CR-101", "name": "Classroom 101", "capacity": 60, "type": "classroom"},
    {"id": "CR-102", "name": "Classroom 102", "capacity": 60, "type": "classroom"},
    {"id": "LH-1", "name": "Lecture Hall 1", "capacity": 150, "type": "lecture-hall"},
    {"id": "LAB-1", "name": "Computing Lab 1", "capacity": 35, "type": "lab", "allowedYears": [1, 2]},
    {"id": "LAB-2", "name": "Computing Lab 2", "capacity": 35, "type": "lab", "department": BRANCH},
]

SUBJECTS = [
    # code, name, lecture type, preferred slots
    ("MAT", "Mathematics", "theory", ["09:00", "10:00"]),
    ("PHY", "Physics", "theory", ["11:00"]),
    ("PRG", "Programming", "theory", []),
    ("PRL", "Programming Lab", "lab", []),
    ("ENG", "Technical English", "theory", ["14:00"]),
]


def build_courses() -> list[Course]:
    courses: list[Course] = []
    for year in YEARS:
        for division in DIVISIONS:
            for position, (code, name, lecture_type, preferred) in enumerate(SUBJECTS):
                instructor = f"F{year}{position}"
                courses.append(
                    Course(
                        id=f"{code}{year}{division}",
                        code=f"{code}{year}0{position}",
                        name=name,
                        instructor_id=instructor,
                        instructor_name=f"Faculty {instructor}",
                        duration_minutes=120 if lecture_type == "lab" else 60,
                        lecture_type=lecture_type,
                        capacity=30,
                        preferred_time_slots=preferred,
                        year=year,
                        branch=BRANCH,
                        division=division,
                        credits=2 if lecture_type == "lab" else 4,
                    )
                )
    return courses


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    init_db()

    engine = TimetableEngine(
        InMemoryCourseRepository(build_courses()),
        InMemoryRoomRepository([Room.model_validate(item) for item in ROOMS]),
        SqlTimetableStore(SessionLocal),
        SqlScenarioStore(SessionLocal),
        settings=settings,
    )

    for year in YEARS:
        for division in DIVISIONS:
            result = engine.generate(year, BRANCH, division)
            conflicts = engine.get_conflicts(year, BRANCH, division)
            print(
                f"Year {year} {BRANCH}-{division}: {result.timetable.id} v{result.timetable.version}, "
                f"{len(result.unscheduled)} unscheduled, {len(conflicts)} conflicts"
            )

    scenario = engine.create_scenario(
        {
            "name": "Reduced day",
            "description": "Six teaching hours per day",
            "parameters": {"constraints": {"maxDailyHours": 6}},
        }
    )
    scenario = engine.generate_scenario(scenario.id)
    metrics = scenario.metrics
    print(
        f"Scenario '{scenario.name}': utilization {metrics.room_utilization}%, "
        f"workload {metrics.faculty_workload}%, satisfaction {metrics.student_satisfaction}%, "
        f"{len(scenario.unscheduled_course_ids)} unscheduled"
    )
    print(f"Database: {settings.database_url}")


if __name__ == "__main__":
    main()
