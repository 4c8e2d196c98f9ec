"""
Root fixtures for the drawer test suite.

Every test gets JSON logging at DEBUG and an empty LogContext.  The rest is
opt-in: ``captured_logs`` for asserting on log lines, ``session_factory``
for a fresh database (``DATABASE_URL``, default in-memory SQLite), a
deterministic clock, the VND table and the bundled configuration.
"""

import json
import logging
import os
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from drawer_config import get_active_config
from drawer_engines.denominations import VND_DENOMINATIONS
from drawer_engines.ledger import CashLedger
from drawer_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from drawer_kernel.domain.clock import DeterministicClock
from drawer_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


class _ListHandler(logging.Handler):
    """Keeps formatted JSON lines in memory."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.setFormatter(StructuredFormatter())
        self.lines: list[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(self.format(record))


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _json_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _empty_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Log lines emitted under ``drawer_kernel`` during the test, parsed.

        closing_service.save(snapshot)
        assert any(r["message"] == "closing_save_completed" for r in captured_logs())
    """
    handler = _ListHandler()
    base = logging.getLogger("drawer_kernel")
    previous_level = base.level
    base.setLevel(logging.DEBUG)
    base.addHandler(handler)
    try:
        yield lambda: [json.loads(line) for line in handler.lines]
    finally:
        base.removeHandler(handler)
        base.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh database with the drawer tables, torn down after the test."""
    engine = init_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A plain session for direct assertions against the tables."""
    s = session_factory()
    yield s
    s.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def table():
    return VND_DENOMINATIONS


@pytest.fixture
def drawer_config():
    return get_active_config()


@pytest.fixture
def make_ledger(table):
    """Build a ledger from keyword counts: ``make_ledger(d500k=10, d100k=5)``."""

    def _make(**counts) -> CashLedger:
        return CashLedger(table, counts)

    return _make


@pytest.fixture
def no_sleep():
    """Recording stand-in for time.sleep."""
    calls: list[float] = []

    def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep
