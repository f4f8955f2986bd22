import pytest

from chronoplan.core.exceptions import ConcurrentModificationError
from chronoplan.schemas.scenario import Modification, Scenario
from chronoplan.services.generator import generate
from chronoplan.services.repositories import InMemoryScenarioStore, InMemoryTimetableStore
from chronoplan.services.scenario_engine import ScenarioEngine
from chronoplan.services.stores import SqlScenarioStore, SqlTimetableStore, scope_key


@pytest.fixture(params=["memory", "sql"])
def timetable_store(request, session_factory):
    if request.param == "memory":
        return InMemoryTimetableStore()
    return SqlTimetableStore(session_factory)


@pytest.fixture(params=["memory", "sql"])
def scenario_store(request, session_factory):
    if request.param == "memory":
        return InMemoryScenarioStore()
    return SqlScenarioStore(session_factory)


def test_save_assigns_versions_and_timestamps(timetable_store, courses, rooms):
    timetable = generate(courses, rooms).timetable

    first = timetable_store.save(timetable)
    second = timetable_store.save(first, expected_version=1)

    assert (first.version, second.version) == (1, 2)
    assert first.created_at is not None
    assert timetable.version == 0
    loaded = timetable_store.load(1, "CSE", "A")
    assert loaded.version == 2
    assert loaded.entries == timetable.entries
    assert [item.version for item in timetable_store.history(1, "CSE", "A")] == [1, 2]


def test_save_with_stale_version_is_rejected(timetable_store, courses, rooms):
    timetable = generate(courses, rooms).timetable
    timetable_store.save(timetable)
    timetable_store.save(timetable, expected_version=1)

    with pytest.raises(ConcurrentModificationError) as exc_info:
        timetable_store.save(timetable, expected_version=1)

    assert exc_info.value.details == {"expected_version": 1, "current_version": 2}


def test_load_by_id_and_missing_scopes(timetable_store, courses, rooms):
    saved = timetable_store.save(generate(courses, rooms).timetable)

    assert timetable_store.load_by_id(saved.id) == saved
    assert timetable_store.load_by_id("tt-unknown") is None
    assert timetable_store.load(4, "CSE", "A") is None
    assert timetable_store.history(4, "CSE", "A") == []


def test_scenario_store_round_trip(scenario_store, courses, rooms):
    scenario = Scenario(
        name="Round trip",
        modifications=[Modification(type="change_time", target="c2", changes={"timeSlots": ["14:00"]})],
    )
    scenario_store.save(scenario)
    generated = ScenarioEngine().generate_scenario(scenario, courses, rooms)
    scenario_store.save(generated)

    loaded = scenario_store.get(scenario.id)

    assert loaded == generated
    assert [item.id for item in scenario_store.list_scenarios()] == [scenario.id]
    assert scenario_store.get("missing") is None


def test_scope_key_handles_multi_cohort_timetables():
    assert scope_key(1, "CSE", "A") == "1|CSE|A"
    assert scope_key(None, None, None) == "||"
