"""
Tests for ledger_kernel.services.rule_service -- the external write path.
"""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from ledger_kernel.db.engine import transaction_scope
from ledger_kernel.exceptions import (
    DuplicateOccurrenceError,
    RuleNotFoundError,
    RuleValidationError,
    TagAlreadyExistsError,
    TagNotFoundError,
    TransactionNotFoundError,
)
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.rule_service import RuleService
from tests.conftest import OWNER_ID, TEST_ACTOR_ID


@pytest.fixture
def service(session, clock):
    return RuleService(session, clock=clock, actor_id=TEST_ACTOR_ID)


def _create(service, **overrides):
    kwargs = dict(
        owner_id=OWNER_ID,
        amount=-1500,
        description="Phone bill",
        frequency="monthly",
        interval_n=1,
        first_due_date=date(2025, 3, 15),
    )
    kwargs.update(overrides)
    return service.create_rule(**kwargs)


class TestCreateRule:
    def test_new_rule_is_active_and_due_on_first_date(self, service):
        rule = _create(service)

        assert rule.active is True
        assert rule.next_due_date == rule.first_due_date == date(2025, 3, 15)
        assert rule.frequency == "monthly"
        assert rule.interval_n == 1
        assert rule.end_date is None

    def test_created_at_comes_from_clock(self, service, clock):
        rule = _create(service)
        assert rule.created_at == clock.now()

    def test_description_is_trimmed(self, service):
        assert _create(service, description="  Rent  ").description == "Rent"

    def test_attaches_tags(self, service):
        bills = service.create_tag("bills")
        rule = _create(service, tag_ids=[bills.id])
        assert rule.tag_ids == (bills.id,)

    @pytest.mark.parametrize("frequency", ["fortnightly", "", "MONTHLY"])
    def test_rejects_unknown_frequency(self, service, frequency):
        with pytest.raises(RuleValidationError) as exc_info:
            _create(service, frequency=frequency)
        assert exc_info.value.field == "frequency"

    @pytest.mark.parametrize("interval_n", [0, -3, 366])
    def test_rejects_out_of_range_interval(self, service, interval_n):
        with pytest.raises(RuleValidationError) as exc_info:
            _create(service, interval_n=interval_n)
        assert exc_info.value.field == "interval_n"

    @pytest.mark.parametrize("interval_n", [1, 365])
    def test_accepts_interval_bounds(self, service, interval_n):
        assert _create(service, interval_n=interval_n).interval_n == interval_n

    @pytest.mark.parametrize("description", ["", "   ", "x" * 256])
    def test_rejects_bad_description(self, service, description):
        with pytest.raises(RuleValidationError) as exc_info:
            _create(service, description=description)
        assert exc_info.value.field == "description"

    def test_rejects_end_date_before_first_due(self, service):
        with pytest.raises(RuleValidationError) as exc_info:
            _create(service, end_date=date(2025, 3, 14))
        assert exc_info.value.field == "end_date"

    def test_rejects_unknown_tag(self, service):
        with pytest.raises(TagNotFoundError):
            _create(service, tag_ids=[uuid4()])


class TestUpdateRule:
    def test_updates_template_fields_only(self, service):
        rule = _create(service)

        updated = service.update_rule(
            rule.id, amount=-1700, description="Phone (new plan)", interval_n=2,
        )

        assert updated.amount == -1700
        assert updated.description == "Phone (new plan)"
        assert updated.interval_n == 2
        assert updated.next_due_date == rule.next_due_date
        assert updated.active is True

    def test_can_set_and_clear_end_date(self, service):
        rule = _create(service)
        assert service.update_rule(rule.id, end_date=date(2025, 12, 31)).end_date == date(2025, 12, 31)
        assert service.update_rule(rule.id, end_date=None).end_date is None

    def test_validates_like_create(self, service):
        rule = _create(service)
        with pytest.raises(RuleValidationError):
            service.update_rule(rule.id, frequency="hourly")

    def test_unknown_rule(self, service):
        with pytest.raises(RuleNotFoundError):
            service.update_rule(uuid4(), amount=1)


class TestRuleTagsAndLifecycle:
    def test_set_rule_tags_replaces_set(self, service):
        a = service.create_tag("a")
        b = service.create_tag("b")
        rule = _create(service, tag_ids=[a.id])

        updated = service.set_rule_tags(rule.id, [b.id])

        assert updated.tag_ids == (b.id,)

    def test_reactivate_rule(self, service, session):
        rule = _create(service)
        session.get(RecurringRule, rule.id).active = False
        session.flush()

        assert service.reactivate_rule(rule.id).active is True

    def test_duplicate_tag_name(self, service):
        service.create_tag("food")
        with pytest.raises(TagAlreadyExistsError) as exc_info:
            service.create_tag(" food ")
        assert exc_info.value.name == "food"


class TestManualTransactions:
    def test_record_transaction_has_no_source_rule(self, service):
        txn = service.record_transaction(OWNER_ID, -350, date(2025, 3, 2), note="Coffee")

        assert txn.source_rule_id is None
        assert txn.is_materialized is False
        assert txn.note == "Coffee"

    def test_manual_rows_on_same_date_do_not_conflict(self, service):
        service.record_transaction(OWNER_ID, -350, date(2025, 3, 2))
        service.record_transaction(OWNER_ID, -350, date(2025, 3, 2))

    def test_backfilled_occurrence_conflicts_with_existing(self, service):
        rule = _create(service)
        service.record_transaction(
            OWNER_ID, -1500, date(2025, 3, 15), source_rule_id=rule.id,
        )

        with pytest.raises(DuplicateOccurrenceError) as exc_info:
            service.record_transaction(
                OWNER_ID, -1500, date(2025, 3, 15), source_rule_id=rule.id,
            )
        assert exc_info.value.rule_id == str(rule.id)
        assert exc_info.value.occurrence_date == "2025-03-15"

    def test_soft_delete_and_restore(self, service, clock):
        txn = service.record_transaction(OWNER_ID, -350, date(2025, 3, 2))

        deleted = service.soft_delete_transaction(txn.id)
        assert deleted.deleted_at == clock.now()

        clock.advance_days(1)
        again = service.soft_delete_transaction(txn.id)
        assert again.deleted_at == deleted.deleted_at

        restored = service.restore_transaction(txn.id)
        assert restored.deleted_at is None

    def test_unknown_transaction(self, service):
        with pytest.raises(TransactionNotFoundError):
            service.soft_delete_transaction(uuid4())


class TestCommittedState:
    def test_service_never_commits(self, session_factory, clock):
        session = session_factory()
        try:
            RuleService(session, clock=clock, actor_id=TEST_ACTOR_ID).create_tag("ephemeral")
            session.rollback()
        finally:
            session.close()

        with transaction_scope(session_factory) as s:
            assert LedgerSelector(s).list_tags() == []

    def test_soft_deleted_row_hidden_from_listing(self, session_factory, clock):
        with transaction_scope(session_factory) as s:
            service = RuleService(s, clock=clock, actor_id=TEST_ACTOR_ID)
            keep = service.record_transaction(OWNER_ID, -1, date(2025, 3, 1))
            gone = service.record_transaction(OWNER_ID, -2, date(2025, 3, 1))
            service.soft_delete_transaction(gone.id)

        with transaction_scope(session_factory) as s:
            listed = LedgerSelector(s).list_transactions(OWNER_ID)
        assert [t.id for t in listed] == [keep.id]

    def test_timestamps_read_back_aware_in_utc(self, session_factory, clock):
        with transaction_scope(session_factory) as s:
            service = RuleService(s, clock=clock, actor_id=TEST_ACTOR_ID)
            txn = service.record_transaction(OWNER_ID, -2, date(2025, 3, 1))
            service.soft_delete_transaction(txn.id)

        with transaction_scope(session_factory) as s:
            read = LedgerSelector(s).get_transaction(txn.id, include_deleted=True)

        assert read.deleted_at == clock.now()
        assert read.deleted_at.tzinfo is not None
        assert read.created_at == clock.now()
        assert read.deleted_at < clock.now() + timedelta(days=30)
