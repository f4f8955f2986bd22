import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from chronoplan.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


def _memory_engine():
    return create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_init_db_creates_tables():
    engine = _memory_engine()

    bootstrap.init_db(engine)

    assert {"timetable_versions", "scenarios"} <= set(inspect(engine).get_table_names())


def test_init_db_raises_on_validation_failure(monkeypatch):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda engine: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Schema bootstrap failed"):
        bootstrap.init_db(_memory_engine())
