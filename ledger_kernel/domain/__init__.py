"""
Pure domain layer.

Data transfer objects, the injectable clock and recurrence arithmetic with
NO dependencies on the ORM, the database or I/O (SystemClock excepted).
"""

from ledger_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
)
from ledger_kernel.domain.dtos import (
    LedgerTransactionInfo,
    OccurrenceInsert,
    RecurringRuleInfo,
    TagInfo,
)
from ledger_kernel.domain.recurrence import Frequency, advance, parse_frequency

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Frequency",
    "advance",
    "parse_frequency",
    "LedgerTransactionInfo",
    "OccurrenceInsert",
    "RecurringRuleInfo",
    "TagInfo",
]
