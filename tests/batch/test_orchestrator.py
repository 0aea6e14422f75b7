"""
Tests for ledger_batch.orchestrator -- wiring config into engine and scheduler.
"""

from datetime import UTC, date, datetime
from uuid import UUID

import pytest

from ledger_batch.orchestrator import LedgerOrchestrator
from ledger_batch.services.recurrence_engine import RecurrenceEngine
from ledger_batch.services.scheduler import RecurrenceScheduler
from ledger_config import LedgerConfig
from ledger_kernel.db.engine import get_engine, reset_engine, transaction_scope
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.rule_service import RuleService
from tests.conftest import OWNER_ID

ACTOR = UUID("00000000-0000-0000-0000-00000000c0f1")


@pytest.fixture(autouse=True)
def _reset_module_engine():
    yield
    reset_engine()


@pytest.fixture
def config(tmp_path):
    return LedgerConfig(
        database_url=f"sqlite:///{tmp_path / 'orchestrated.db'}",
        timezone="Asia/Tokyo",
        actor_id=ACTOR,
        retention_days=14,
        tick_interval_seconds=5,
    )


@pytest.fixture
def late_evening_clock():
    # 20:00 UTC on 1 March is already 2 March in Tokyo
    return DeterministicClock(datetime(2025, 3, 1, 20, 0, tzinfo=UTC))


class TestWiring:
    def test_from_config_initializes_engine(self, config, late_evening_clock):
        orch = LedgerOrchestrator.from_config(config, clock=late_evening_clock)

        assert get_engine().dialect.name == "sqlite"
        assert isinstance(orch.engine, RecurrenceEngine)
        assert orch.engine.actor_id == ACTOR
        assert orch.actor_id == ACTOR
        assert orch.engine.clock is late_evening_clock
        assert orch.config is config

    def test_today_uses_configured_timezone(self, config, late_evening_clock):
        orch = LedgerOrchestrator.from_config(config, clock=late_evening_clock)
        assert orch.today() == date(2025, 3, 2)

    def test_create_scheduler(self, config, late_evening_clock):
        orch = LedgerOrchestrator.from_config(config, clock=late_evening_clock)

        scheduler = orch.create_scheduler()

        assert isinstance(scheduler, RecurrenceScheduler)
        assert scheduler._tick_interval == 5
        assert scheduler._engine is orch.engine

    def test_ready_logged(self, config, captured_logs):
        LedgerOrchestrator.from_config(config)

        [record] = [r for r in captured_logs() if r["message"] == "orchestrator_ready"]
        assert record["timezone"] == "Asia/Tokyo"
        assert record["actor_id"] == str(ACTOR)


class TestEndToEnd:
    def test_scheduler_and_direct_run_share_as_of(self, config, late_evening_clock):
        orch = LedgerOrchestrator.from_config(
            config, clock=late_evening_clock, create_schema=True,
        )
        with transaction_scope(orch.session_factory) as s:
            rule = RuleService(s, clock=late_evening_clock).create_rule(
                owner_id=OWNER_ID,
                amount=-999,
                description="Gym",
                frequency="daily",
                interval_n=1,
                first_due_date=date(2025, 3, 1),
            )

        result = orch.create_scheduler().tick()

        # A run materializes at most one occurrence per rule
        assert result.as_of == date(2025, 3, 2)
        assert result.processed_count == 1

        again = orch.engine.run(orch.today())
        assert again.processed_count == 1

        with transaction_scope(orch.session_factory) as s:
            dates = [
                t.transaction_date
                for t in LedgerSelector(s).list_transactions_for_rule(rule.id)
            ]
            next_due = LedgerSelector(s).get_rule(rule.id).next_due_date
        assert dates == [date(2025, 3, 1), date(2025, 3, 2)]
        assert next_due == date(2025, 3, 3)

    def test_retention_days_from_config(self, config, late_evening_clock):
        orch = LedgerOrchestrator.from_config(
            config, clock=late_evening_clock, create_schema=True,
        )
        with transaction_scope(orch.session_factory) as s:
            service = RuleService(s, clock=DeterministicClock(datetime(2025, 2, 10, tzinfo=UTC)))
            txn = service.record_transaction(OWNER_ID, -1, date(2025, 2, 10))
            service.soft_delete_transaction(txn.id)

        result = orch.engine.run(orch.today())

        # cutoff is 2025-02-16 with a 14 day window
        assert result.purged_count == 1
