"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.ledger_store import LedgerStore
from ledger_kernel.services.rule_service import RuleService

__all__ = [
    "LedgerStore",
    "RuleService",
]
