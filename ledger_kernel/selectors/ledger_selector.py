"""
LedgerSelector -- read-only queries over rules, transactions and tags.

Returns DTOs only.  Soft-deleted transactions are hidden unless a method
says otherwise.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.dtos import LedgerTransactionInfo, RecurringRuleInfo, TagInfo
from ledger_kernel.models.ledger_transaction import LedgerTransaction
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.models.tag import Tag, ledger_transaction_tags, recurring_rule_tags
from ledger_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector):
    """Read side of the ledger."""

    def get_rule(self, rule_id: UUID) -> RecurringRuleInfo | None:
        rule = self.session.get(RecurringRule, rule_id)
        return rule.to_dto() if rule is not None else None

    def list_rules(
        self, owner_id: UUID, active_only: bool = False,
    ) -> list[RecurringRuleInfo]:
        """Rules for an owner ordered by next_due_date."""
        query = select(RecurringRule).where(RecurringRule.owner_id == owner_id)
        if active_only:
            query = query.where(RecurringRule.active == True)  # noqa: E712
        query = query.order_by(
            RecurringRule.next_due_date.asc(), RecurringRule.id.asc(),
        )
        return [r.to_dto() for r in self.session.execute(query).scalars()]

    def get_transaction(
        self, transaction_id: UUID, include_deleted: bool = False,
    ) -> LedgerTransactionInfo | None:
        txn = self.session.get(LedgerTransaction, transaction_id)
        if txn is None or (txn.is_deleted and not include_deleted):
            return None
        return txn.to_dto()

    def list_transactions(
        self,
        owner_id: UUID,
        start: date | None = None,
        end: date | None = None,
    ) -> list[LedgerTransactionInfo]:
        """Live transactions for an owner, newest first.

        ``start`` and ``end`` are inclusive bounds on transaction_date.
        """
        query = select(LedgerTransaction).where(
            LedgerTransaction.owner_id == owner_id,
            LedgerTransaction.deleted_at.is_(None),
        )
        if start is not None:
            query = query.where(LedgerTransaction.transaction_date >= start)
        if end is not None:
            query = query.where(LedgerTransaction.transaction_date <= end)
        query = query.order_by(
            LedgerTransaction.transaction_date.desc(),
            LedgerTransaction.created_at.desc(),
        )
        return [t.to_dto() for t in self.session.execute(query).scalars()]

    def list_transactions_for_rule(
        self, rule_id: UUID, include_deleted: bool = False,
    ) -> list[LedgerTransactionInfo]:
        """Occurrences materialized from a rule, oldest first."""
        query = select(LedgerTransaction).where(
            LedgerTransaction.source_rule_id == rule_id,
        )
        if not include_deleted:
            query = query.where(LedgerTransaction.deleted_at.is_(None))
        query = query.order_by(LedgerTransaction.transaction_date.asc())
        return [t.to_dto() for t in self.session.execute(query).scalars()]

    def transaction_tag_ids(self, transaction_id: UUID) -> set[UUID]:
        return set(
            self.session.execute(
                select(ledger_transaction_tags.c.tag_id).where(
                    ledger_transaction_tags.c.transaction_id == transaction_id,
                )
            ).scalars()
        )

    def rule_tag_ids(self, rule_id: UUID) -> set[UUID]:
        return set(
            self.session.execute(
                select(recurring_rule_tags.c.tag_id).where(
                    recurring_rule_tags.c.rule_id == rule_id,
                )
            ).scalars()
        )

    def list_tags(self) -> list[TagInfo]:
        return [
            t.to_dto()
            for t in self.session.execute(select(Tag).order_by(Tag.name)).scalars()
        ]
