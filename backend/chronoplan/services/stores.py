from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chronoplan.core.exceptions import ConcurrentModificationError
from chronoplan.models.scenario import ScenarioRecord
from chronoplan.models.timetable_version import TimetableVersion
from chronoplan.schemas.scenario import Scenario
from chronoplan.schemas.timetable import Timetable

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def scope_key(year: int | None, branch: str | None, division: str | None) -> str:
    return "|".join("" if part is None else str(part) for part in (year, branch, division))


def _to_timetable(row: TimetableVersion) -> Timetable:
    timetable = Timetable.model_validate(row.payload)
    return timetable.model_copy(update={"version": row.version})


class SqlTimetableStore:
    """One `timetable_versions` row per saved version; the newest row is current."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    def _latest(self, db: Session, key: str) -> TimetableVersion | None:
        return db.execute(
            select(TimetableVersion)
            .where(TimetableVersion.scope_key == key)
            .order_by(TimetableVersion.version.desc())
            .limit(1)
        ).scalar_one_or_none()

    def load(self, year: int, branch: str, division: str) -> Timetable | None:
        with self.session_factory() as db:
            row = self._latest(db, scope_key(year, branch, division))
            return _to_timetable(row) if row is not None else None

    def load_by_id(self, timetable_id: str) -> Timetable | None:
        with self.session_factory() as db:
            row = db.execute(
                select(TimetableVersion)
                .where(TimetableVersion.timetable_id == timetable_id)
                .order_by(TimetableVersion.version.desc())
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            # Only the current version of a scope is addressable by id.
            latest = self._latest(db, row.scope_key)
            if latest is None or latest.id != row.id:
                return None
            return _to_timetable(row)

    def save(self, timetable: Timetable, expected_version: int | None = None) -> Timetable:
        key = scope_key(timetable.year, timetable.branch, timetable.division)
        with self.session_factory() as db:
            current = db.execute(
                select(func.max(TimetableVersion.version)).where(TimetableVersion.scope_key == key)
            ).scalar_one_or_none() or 0
            if expected_version is not None and expected_version != current:
                raise ConcurrentModificationError(timetable.scope, expected_version, current)

            stored = timetable.model_copy(
                deep=True,
                update={
                    "version": current + 1,
                    "created_at": timetable.created_at or datetime.now(timezone.utc),
                },
            )
            db.add(
                TimetableVersion(
                    timetable_id=stored.id,
                    scope_key=key,
                    year=stored.year,
                    branch=stored.branch,
                    division=stored.division,
                    version=stored.version,
                    payload=stored.model_dump(mode="json", by_alias=True),
                )
            )
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                latest = self._latest(db, key)
                raise ConcurrentModificationError(
                    timetable.scope,
                    current if expected_version is None else expected_version,
                    latest.version if latest is not None else current,
                ) from exc

        logger.info("Saved timetable %s for %s as version %d", stored.id, stored.scope, stored.version)
        return stored

    def history(self, year: int, branch: str, division: str) -> list[Timetable]:
        with self.session_factory() as db:
            rows = db.execute(
                select(TimetableVersion)
                .where(TimetableVersion.scope_key == scope_key(year, branch, division))
                .order_by(TimetableVersion.version.asc())
            ).scalars()
            return [_to_timetable(row) for row in rows]


class SqlScenarioStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory

    def get(self, scenario_id: str) -> Scenario | None:
        with self.session_factory() as db:
            record = db.get(ScenarioRecord, scenario_id)
            return Scenario.model_validate(record.payload) if record is not None else None

    def save(self, scenario: Scenario) -> Scenario:
        payload = scenario.model_dump(mode="json", by_alias=True)
        with self.session_factory() as db:
            record = db.get(ScenarioRecord, scenario.id)
            if record is None:
                record = ScenarioRecord(
                    id=scenario.id,
                    name=scenario.name,
                    status=scenario.status.value,
                    base_scenario_id=scenario.base_scenario_id,
                    payload=payload,
                )
                db.add(record)
            else:
                record.name = scenario.name
                record.status = scenario.status.value
                record.base_scenario_id = scenario.base_scenario_id
                record.payload = payload
            db.commit()
        logger.debug("Saved scenario %s (%s)", scenario.name, scenario.status.value)
        return scenario

    def list_scenarios(self) -> list[Scenario]:
        with self.session_factory() as db:
            records = db.execute(select(ScenarioRecord).order_by(ScenarioRecord.created_at.asc(), ScenarioRecord.id)).scalars()
            return [Scenario.model_validate(record.payload) for record in records]

