"""
Pytest fixtures for the compliance test suite.

Provides:
- An in-memory SQLite engine with the compliance tables (or PostgreSQL
  when DATABASE_URL is set)
- Per-test sessions isolated by outer-transaction rollback
- A DeterministicClock and services wired to it
- Structured log capture

Environment Variables:
- DATABASE_URL: optional database URL; defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import UTC, date, datetime
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from compliance_config import ComplianceConfig
from compliance_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compliance_services import ComplianceService, RecycleBinService, StatsFeed

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

# 2024-01-15 09:00 UTC: two weeks into the Scenario A agreement.
TEST_NOW = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, compliance_service):
            compliance_service.create_agreement(...)
            logs = captured_logs()
            assert any(r["message"] == "agreement_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Uses the SQLAlchemy 2.0 ``join_transaction_mode`` pattern:
    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Any ``session.commit()`` inside the test releases a savepoint -- it
      does NOT actually commit to the database
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock, config and services
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def compliance_config() -> ComplianceConfig:
    return ComplianceConfig.with_defaults()


@pytest.fixture
def stats_feed() -> StatsFeed:
    return StatsFeed()


@pytest.fixture
def compliance_service(session, deterministic_clock, compliance_config, stats_feed):
    return ComplianceService(
        session,
        clock=deterministic_clock,
        config=compliance_config,
        stats_feed=stats_feed,
    )


@pytest.fixture
def recycle_bin_service(session, deterministic_clock, compliance_config, stats_feed):
    return RecycleBinService(
        session,
        clock=deterministic_clock,
        config=compliance_config,
        stats_feed=stats_feed,
    )


# =============================================================================
# Agreement terms
# =============================================================================


@pytest.fixture
def monthly_terms() -> dict:
    """Scenario A: a calendar-year Monthly agreement for 120000."""
    return {
        "reference_number": "SRA/T/2024/001",
        "name": "Kothrud Gantry",
        "district": "Pune",
        "area": "Kothrud",
        "start_date": date(2024, 1, 1),
        "end_date": date(2024, 12, 31),
        "license_fee": 120000,
        "frequency": "Monthly",
    }


@pytest.fixture
def one_time_terms() -> dict:
    """Scenario B: a One-Time agreement whose start and end coincide."""
    return {
        "reference_number": "SRA/T/2024/002",
        "name": "Station Road Hoarding",
        "district": "Nashik",
        "start_date": date(2024, 3, 1),
        "end_date": date(2024, 3, 1),
        "license_fee": 50000,
        "frequency": "One-Time",
    }
