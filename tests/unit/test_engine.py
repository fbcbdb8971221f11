"""Tests for engine and session management (dairy_kernel/db/engine.py)."""

import pytest
from sqlalchemy import inspect, select

from dairy_kernel.db import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from dairy_kernel.db.engine import is_postgres
from dairy_kernel.logging_config import LogContext
from dairy_kernel.models import SequenceCounter, sequence_names


@pytest.fixture
def sqlite_engine():
    engine = init_engine_from_url("sqlite+pysqlite:///:memory:")
    create_tables()
    yield engine
    reset_engine()


class TestEngineLifecycle:

    def test_uninitialized_access_raises(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()
        with pytest.raises(RuntimeError):
            get_session_factory()
        assert not is_postgres()

    def test_sqlite_engine(self, sqlite_engine):
        assert get_engine() is sqlite_engine
        assert not is_postgres()
        assert get_session_factory()().bind is sqlite_engine

    def test_create_tables_seeds_counters(self, sqlite_engine):
        create_tables()
        with session_scope() as session:
            names = list(session.execute(select(SequenceCounter.name)).scalars())
        assert sorted(names) == sorted(sequence_names())

    def test_drop_tables(self, sqlite_engine):
        drop_tables()
        assert inspect(sqlite_engine).get_table_names() == []


class TestSessionScope:

    def test_commits_on_exit(self, sqlite_engine):
        with session_scope() as session:
            session.add(SequenceCounter(name="scratch", current_value=7))

        with session_scope() as session:
            counter = session.execute(
                select(SequenceCounter).where(SequenceCounter.name == "scratch")
            ).scalar_one()
        assert counter.current_value == 7

    def test_rolls_back_on_error(self, sqlite_engine):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(SequenceCounter(name="scratch", current_value=7))
                session.flush()
                raise ValueError("boom")

        with session_scope() as session:
            found = session.execute(
                select(SequenceCounter).where(SequenceCounter.name == "scratch")
            ).scalar_one_or_none()
        assert found is None

    def test_log_lines_share_a_correlation_id(self, sqlite_engine, captured_logs):
        with session_scope():
            pass
        with session_scope():
            pass

        started = [r for r in captured_logs if r["message"] == "transaction_started"]
        ids = [r["correlation_id"] for r in started]
        assert len(ids) == 2 and ids[0] != ids[1]
        committed = [r for r in captured_logs if r["message"] == "transaction_committed"]
        assert [r["correlation_id"] for r in committed] == ids
        assert LogContext.get("correlation_id") is None

    def test_caller_correlation_id_is_kept(self, sqlite_engine, captured_logs):
        with LogContext.bind(correlation_id="import-42"):
            with session_scope():
                pass
        started = [r for r in captured_logs if r["message"] == "transaction_started"]
        assert started[0]["correlation_id"] == "import-42"
