"""
Pytest fixtures for the ledger test suite.

Provides:
- Structured log capture
- SQLite file databases (one per test, under tmp_path) with the real ORM
  models and the production connection hooks (WAL, deferred BEGIN, foreign keys)
- Deterministic clock
- Rule / tag / transaction factories that commit their own unit of work

SQLite note: sessions begin DEFERRED and the database runs in WAL mode, so
a session reads from the snapshot taken at its first statement.  Seed data
through the factories before a test session issues its first query; read
results back with ``transaction_scope``.
"""

import json
import logging
from datetime import UTC, date, datetime
from io import StringIO
from uuid import UUID

import pytest
from sqlalchemy.orm import sessionmaker

from ledger_batch.services.recurrence_engine import RecurrenceEngine
from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import build_engine, transaction_scope
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import TagInfo
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.ledger_transaction import LedgerTransaction
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.services.rule_service import RuleService

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-0000000ac701")

# Single ledger owner used throughout
OWNER_ID = UUID("00000000-0000-0000-0000-00000000a11c")

# 2025-03-01 09:00 UTC
DEFAULT_NOW = datetime(2025, 3, 1, 9, 0, 0, tzinfo=UTC)


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
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, recurrence_engine):
            recurrence_engine.run(date(2025, 3, 1))
            logs = captured_logs()
            assert any(r["message"] == "recurrence_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def engine(db_url):
    eng = build_engine(db_url, sqlite_busy_timeout=5.0)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """A session for single-session tests.  Rolled back and closed after."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(DEFAULT_NOW)


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


# =============================================================================
# Data factories (each commits its own unit of work)
# =============================================================================


@pytest.fixture
def make_tag(session_factory, clock):
    def _make(name: str) -> TagInfo:
        with transaction_scope(session_factory) as s:
            info = RuleService(s, clock=clock, actor_id=TEST_ACTOR_ID).create_tag(name)
        return info

    return _make


@pytest.fixture
def make_rule(session_factory, clock):
    """Create a rule through RuleService (validated, next_due = first_due)."""

    def _make(
        first_due_date: date,
        frequency: str = "monthly",
        interval_n: int = 1,
        amount: int = -1299,
        description: str = "Streaming subscription",
        end_date: date | None = None,
        tag_ids=(),
    ):
        with transaction_scope(session_factory) as s:
            return RuleService(s, clock=clock, actor_id=TEST_ACTOR_ID).create_rule(
                owner_id=OWNER_ID,
                amount=amount,
                description=description,
                frequency=frequency,
                interval_n=interval_n,
                first_due_date=first_due_date,
                end_date=end_date,
                tag_ids=tag_ids,
            )

    return _make


@pytest.fixture
def insert_rule(session_factory, clock):
    """Insert a rule row directly, bypassing validation.

    Used for states RuleService refuses to create (unknown frequencies,
    next_due_date ahead of first_due_date).
    """

    def _insert(
        next_due_date: date,
        frequency: str = "monthly",
        interval_n: int = 1,
        first_due_date: date | None = None,
        end_date: date | None = None,
        active: bool = True,
        amount: int = -500,
        description: str | None = "Direct rule",
    ) -> UUID:
        with transaction_scope(session_factory) as s:
            rule = RecurringRule(
                owner_id=OWNER_ID,
                amount=amount,
                description=description,
                frequency=frequency,
                interval_n=interval_n,
                first_due_date=first_due_date or next_due_date,
                next_due_date=next_due_date,
                end_date=end_date,
                active=active,
                created_at=clock.now(),
                created_by_id=TEST_ACTOR_ID,
            )
            s.add(rule)
            s.flush()
            return rule.id

    return _insert


@pytest.fixture
def insert_transaction(session_factory, clock):
    """Insert a ledger row directly (optionally soft-deleted)."""

    def _insert(
        transaction_date: date,
        deleted_at: datetime | None = None,
        source_rule_id: UUID | None = None,
        amount: int = -100,
    ) -> UUID:
        with transaction_scope(session_factory) as s:
            txn = LedgerTransaction(
                owner_id=OWNER_ID,
                amount=amount,
                transaction_date=transaction_date,
                note="seeded",
                source_rule_id=source_rule_id,
                deleted_at=deleted_at,
                created_at=clock.now(),
                created_by_id=TEST_ACTOR_ID,
            )
            s.add(txn)
            s.flush()
            return txn.id

    return _insert


# =============================================================================
# Batch fixtures
# =============================================================================


ENGINE_ACTOR_ID = UUID("00000000-0000-0000-0000-0000000e9e01")


@pytest.fixture
def recurrence_engine(session_factory, clock):
    return RecurrenceEngine(session_factory, clock=clock, actor_id=ENGINE_ACTOR_ID)
