"""
Tests for ledger_kernel.selectors.ledger_selector -- read side of the ledger.
"""

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

from ledger_kernel.selectors.ledger_selector import LedgerSelector
from tests.conftest import OWNER_ID


@pytest.fixture
def selector(session):
    return LedgerSelector(session)


class TestRules:
    def test_get_rule_returns_dto(self, selector, make_tag, make_rule):
        tag = make_tag("bills")
        created = make_rule(date(2025, 3, 1), tag_ids=[tag.id])

        rule = selector.get_rule(created.id)

        assert rule.id == created.id
        assert rule.next_due_date == created.next_due_date
        assert rule.frequency == "monthly"
        assert rule.tag_ids == (tag.id,)
        assert selector.rule_tag_ids(created.id) == {tag.id}

    def test_get_missing_rule(self, selector):
        assert selector.get_rule(uuid4()) is None

    def test_list_rules_active_only(self, selector, make_rule, insert_rule):
        active = make_rule(date(2025, 3, 1))
        insert_rule(date(2025, 2, 1), active=False)

        assert [r.id for r in selector.list_rules(OWNER_ID, active_only=True)] == [active.id]
        assert len(selector.list_rules(OWNER_ID)) == 2

    def test_list_rules_other_owner(self, selector, make_rule):
        make_rule(date(2025, 3, 1))
        assert selector.list_rules(uuid4()) == []


class TestTransactions:
    def test_list_transactions_newest_first(self, selector, insert_transaction):
        older = insert_transaction(date(2025, 1, 5))
        newer = insert_transaction(date(2025, 2, 5))

        listed = selector.list_transactions(OWNER_ID)

        assert [t.id for t in listed] == [newer, older]

    def test_list_transactions_date_bounds_inclusive(self, selector, insert_transaction):
        insert_transaction(date(2025, 1, 31))
        inside_start = insert_transaction(date(2025, 2, 1))
        inside_end = insert_transaction(date(2025, 2, 28))
        insert_transaction(date(2025, 3, 1))

        listed = selector.list_transactions(
            OWNER_ID, start=date(2025, 2, 1), end=date(2025, 2, 28),
        )

        assert {t.id for t in listed} == {inside_start, inside_end}

    def test_soft_deleted_hidden_unless_requested(self, selector, insert_transaction):
        txn_id = insert_transaction(
            date(2025, 2, 1), deleted_at=datetime(2025, 2, 2, tzinfo=UTC),
        )

        assert selector.get_transaction(txn_id) is None
        assert selector.get_transaction(txn_id, include_deleted=True).is_deleted
        assert selector.list_transactions(OWNER_ID) == []

    def test_list_transactions_for_rule(self, selector, insert_rule, insert_transaction):
        rule_id = insert_rule(date(2025, 4, 1))
        march = insert_transaction(date(2025, 3, 1), source_rule_id=rule_id)
        feb = insert_transaction(date(2025, 2, 1), source_rule_id=rule_id)
        insert_transaction(date(2025, 1, 1))

        occurrences = selector.list_transactions_for_rule(rule_id)

        assert [t.id for t in occurrences] == [feb, march]
        assert all(t.is_materialized for t in occurrences)

    def test_transaction_tag_ids_empty(self, selector, insert_transaction):
        assert selector.transaction_tag_ids(insert_transaction(date(2025, 1, 1))) == set()
