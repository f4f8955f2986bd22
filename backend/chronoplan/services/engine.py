from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chronoplan.core.config import Settings, get_settings
from chronoplan.core.exceptions import ConfigurationError, ConstraintViolation, NotFoundError, ValidationError
from chronoplan.schemas.change import EditRejected, PendingChangeSet, ProposedChange
from chronoplan.schemas.conflict import Conflict, ResolveResult
from chronoplan.schemas.faculty import Instructor
from chronoplan.schemas.generator import GenerationConstraints, GenerationResult
from chronoplan.schemas.scenario import Scenario, ScenarioCreate, ScenarioStatus
from chronoplan.schemas.timetable import Timetable, scope_label
from chronoplan.services.conflict_service import ConflictService
from chronoplan.services.generator import TimetableGenerator
from chronoplan.services.manual_edit import ManualEditValidator
from chronoplan.services.repositories import CourseRepository, RoomRepository, ScenarioStore, TimetableStore
from chronoplan.services.resolver import ConflictResolver
from chronoplan.services.scenario_engine import ScenarioEngine

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

COPY_SUFFIX = " (Copy)"


def _parse(model_cls: type[ModelT], value: Any) -> ModelT:
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value)
    except PydanticValidationError as exc:
        raise ValidationError(
            f"Invalid {model_cls.__name__} payload",
            details={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


class TimetableEngine:
    """Entry points used by the surrounding application.

    Every call loads what it needs from the injected collaborators, runs one
    of the scheduling services on copies and saves the result. Saves of an
    existing timetable pass the version that was loaded, so a concurrent
    writer surfaces as ConcurrentModificationError instead of a lost update.
    """

    def __init__(
        self,
        course_repository: CourseRepository,
        room_repository: RoomRepository,
        timetable_store: TimetableStore,
        scenario_store: ScenarioStore,
        instructors: Sequence[Instructor] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.course_repository = course_repository
        self.room_repository = room_repository
        self.timetable_store = timetable_store
        self.scenario_store = scenario_store
        self.instructors = list(instructors) if instructors is not None else None
        self.settings = settings or get_settings()

    @contextmanager
    def _timed(self, operation: str) -> Iterator[None]:
        started = perf_counter()
        try:
            yield
        finally:
            elapsed = perf_counter() - started
            elapsed_ms = int(elapsed * 1000)
            if elapsed > self.settings.operation_budget_seconds:
                logger.warning(
                    "%s took %dms, over the %.1fs budget",
                    operation,
                    elapsed_ms,
                    self.settings.operation_budget_seconds,
                )
            else:
                logger.info("%s finished in %dms", operation, elapsed_ms)

    def _generation_constraints(self) -> GenerationConstraints:
        try:
            return GenerationConstraints(
                max_daily_hours=self.settings.default_max_daily_hours,
                faculty_max_load=self.settings.default_faculty_max_load,
                lab_preferred_slots=self.settings.lab_preferred_slots,
                instructors=self.instructors,
            )
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid scheduling settings: {exc.error_count()} error(s)") from exc

    @staticmethod
    def _validate_scope(year: int, branch: str, division: str) -> None:
        if not isinstance(year, int) or year < 1 or year > 4:
            raise ValidationError("Year must be between 1 and 4", details={"year": year})
        if not branch or not branch.strip():
            raise ValidationError("Branch is required")
        if not division or not division.strip():
            raise ValidationError("Division is required")

    def _load_scope(self, year: int, branch: str, division: str) -> Timetable:
        self._validate_scope(year, branch, division)
        timetable = self.timetable_store.load(year, branch, division)
        if timetable is None:
            raise NotFoundError("Timetable", scope_label(year, branch, division))
        return timetable

    def generate(self, year: int, branch: str, division: str) -> GenerationResult:
        with self._timed(f"generate {scope_label(year, branch, division)}"):
            self._validate_scope(year, branch, division)
            courses = self.course_repository.all_for_scope(year, branch, division)
            rooms = self.room_repository.all_rooms()
            result = TimetableGenerator(courses, rooms, self._generation_constraints()).generate()

            current = self.timetable_store.load(year, branch, division)
            saved = self.timetable_store.save(
                result.timetable,
                expected_version=current.version if current is not None else 0,
            )
            return GenerationResult(timetable=saved, unscheduled=result.unscheduled)

    def get_conflicts(self, year: int, branch: str, division: str) -> list[Conflict]:
        with self._timed(f"get_conflicts {scope_label(year, branch, division)}"):
            return ConflictService(self._load_scope(year, branch, division)).detect()

    def get_available_slots(self, year: int, branch: str, division: str) -> list[tuple[str, str]]:
        with self._timed(f"get_available_slots {scope_label(year, branch, division)}"):
            return ConflictService(self._load_scope(year, branch, division)).available_slots()

    def resolve_conflicts(self, year: int, branch: str, division: str) -> ResolveResult:
        with self._timed(f"resolve_conflicts {scope_label(year, branch, division)}"):
            timetable = self._load_scope(year, branch, division)
            conflicts = ConflictService(timetable).detect()
            if not conflicts:
                return ResolveResult(timetable=timetable)

            resolver = ConflictResolver(
                self.room_repository,
                courses=self.course_repository.all_courses(),
                instructors=self.instructors,
                max_daily_hours=self.settings.default_max_daily_hours,
            )
            result = resolver.resolve(timetable, conflicts)
            if not result.resolved:
                return result
            saved = self.timetable_store.save(result.timetable, expected_version=timetable.version)
            return result.model_copy(update={"timetable": saved})

    def apply_manual_change(
        self,
        schedule_id: str,
        changes: PendingChangeSet | Sequence[ProposedChange | dict[str, Any]],
    ) -> Timetable:
        with self._timed(f"apply_manual_change {schedule_id}"):
            timetable = self.timetable_store.load_by_id(schedule_id)
            if timetable is None:
                raise NotFoundError("Timetable", schedule_id)

            if isinstance(changes, PendingChangeSet):
                if changes.schedule_id != schedule_id:
                    raise ValidationError("Change set belongs to a different schedule")
                proposed = list(changes.changes)
            else:
                proposed = [_parse(ProposedChange, change) for change in changes]

            validator = ManualEditValidator(self.course_repository.all_courses(), self.room_repository.all_rooms())
            outcome = validator.validate(timetable, proposed)
            if isinstance(outcome, EditRejected):
                raise ConstraintViolation(outcome.message, outcome.conflicts)
            return self.timetable_store.save(outcome.timetable, expected_version=timetable.version)

    def create_scenario(self, params: ScenarioCreate | dict[str, Any]) -> Scenario:
        with self._timed("create_scenario"):
            payload = _parse(ScenarioCreate, params)
            if payload.base_scenario_id and self.scenario_store.get(payload.base_scenario_id) is None:
                raise NotFoundError("Scenario", payload.base_scenario_id)
            scenario = _parse(Scenario, payload.model_dump())
            logger.info("Created scenario %s (%s)", scenario.name, scenario.id)
            return self.scenario_store.save(scenario)

    def _get_scenario(self, scenario_id: str) -> Scenario:
        scenario = self.scenario_store.get(scenario_id)
        if scenario is None:
            raise NotFoundError("Scenario", scenario_id)
        return scenario

    def generate_scenario(self, scenario_id: str) -> Scenario:
        with self._timed(f"generate_scenario {scenario_id}"):
            scenario = self._get_scenario(scenario_id)
            engine = ScenarioEngine(
                self.scenario_store.get,
                instructors=self.instructors,
                lab_preferred_slots=self.settings.lab_preferred_slots,
            )
            generated = engine.generate_scenario(
                scenario,
                self.course_repository.all_courses(),
                self.room_repository.all_rooms(),
            )
            return self.scenario_store.save(generated)

    def clone_scenario(self, scenario_id: str) -> Scenario:
        with self._timed(f"clone_scenario {scenario_id}"):
            source = self._get_scenario(scenario_id)
            data = source.model_dump(
                exclude={"id", "status", "generated_timetable", "metrics", "unscheduled_course_ids", "created_at"}
            )
            data["name"] = f"{source.name}{COPY_SUFFIX}"
            data["status"] = ScenarioStatus.draft
            clone = _parse(Scenario, data)
            logger.info("Cloned scenario %s into %s", source.id, clone.id)
            return self.scenario_store.save(clone)
