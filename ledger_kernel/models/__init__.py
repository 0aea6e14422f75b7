"""ORM models for the ledger kernel."""

from ledger_kernel.models.ledger_transaction import LedgerTransaction
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.models.tag import Tag, ledger_transaction_tags, recurring_rule_tags

__all__ = [
    "LedgerTransaction",
    "RecurringRule",
    "Tag",
    "ledger_transaction_tags",
    "recurring_rule_tags",
]
