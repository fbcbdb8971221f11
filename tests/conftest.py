"""
Pytest configuration and fixtures for the dairy settlement ledger tests.

By default every test gets a fresh in-memory SQLite database.  Set
DATABASE_URL to run the same tests against PostgreSQL; each test then runs
inside a transaction that is rolled back on teardown.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from dairy_kernel.db.base import Base
from dairy_kernel.db.engine import create_tables
from dairy_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from dairy_kernel.domain.clock import DeterministicClock
from dairy_kernel.logging_config import LogContext, configure_logging, reset_logging
from dairy_kernel.services.advance_ledger import AdvanceLedger
from dairy_kernel.services.rate_card_service import RateCardService
from dairy_kernel.services.sequence_service import SequenceService
from dairy_services.collection_service import CollectionService
from dairy_services.settlement_service import SettlementService
from dairy_services.statement_service import StatementService

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def _configure_test_logging():
    """Configure structured logging once for the whole test session."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to avoid cross-test leakage."""
    LogContext.clear()
    yield
    LogContext.clear()


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[dict] = []

    def emit(self, record):
        self.records.append(json.loads(self.format(record)))


@pytest.fixture
def captured_logs():
    """
    Capture structured log records emitted under ``dairy_ledger``.

    Yields a list of parsed JSON dicts, one per record.
    """
    from dairy_kernel.logging_config import StructuredFormatter

    handler = _ListHandler()
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("dairy_ledger")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    yield handler.records
    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def _immutability_listeners():
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()


@pytest.fixture(scope="session")
def database_url() -> str:
    return os.environ.get("DATABASE_URL", SQLITE_MEMORY_URL)


@pytest.fixture(scope="session")
def _postgres_engine(database_url):
    """Shared engine when DATABASE_URL points at a server database."""
    if database_url.startswith("sqlite"):
        yield None
        return
    engine = create_engine(database_url)
    Base.metadata.drop_all(engine)
    create_tables(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(database_url, _postgres_engine):
    """
    A Session bound to a clean database.

    SQLite: a brand new in-memory database per test.
    PostgreSQL: an outer transaction rolled back after the test, with
    service commits turned into savepoints.
    """
    if _postgres_engine is None:
        engine = create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        create_tables(engine)
        db_session = Session(bind=engine, expire_on_commit=False)
        yield db_session
        db_session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()
        return

    connection = _postgres_engine.connect()
    transaction = connection.begin()
    db_session = Session(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    yield db_session
    db_session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# Clock and services
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-03-31 12:00 UTC."""
    return DeterministicClock.on(date(2024, 3, 31))


@pytest.fixture
def sequence_service(session):
    return SequenceService(session)


@pytest.fixture
def rate_card_service(session, sequence_service):
    return RateCardService(session, sequence_service)


@pytest.fixture
def advance_ledger(session, sequence_service):
    return AdvanceLedger(session, sequence_service)


@pytest.fixture
def collection_service(session, deterministic_clock, sequence_service):
    return CollectionService(session, deterministic_clock, sequence_service)


@pytest.fixture
def settlement_service(session, deterministic_clock, advance_ledger, sequence_service):
    return SettlementService(
        session,
        clock=deterministic_clock,
        advance_ledger=advance_ledger,
        sequence_service=sequence_service,
    )


@pytest.fixture
def statement_service(session, deterministic_clock):
    return StatementService(session, clock=deterministic_clock)


@pytest.fixture
def cow_rate_card(rate_card_service):
    """
    A small COW card:

        fat [3, 4)   snf [8, 9)  -> 38
        fat [4, 5)   snf [8, 9)  -> 40
        fat [3, 6)   (any snf)   -> 36   (wide fallback band)
    """
    return [
        rate_card_service.create_rule("COW", Decimal("38"), "3", "4", "8", "9"),
        rate_card_service.create_rule("COW", Decimal("40"), "4", "5", "8", "9"),
        rate_card_service.create_rule("COW", Decimal("36"), "3", "6"),
    ]
