"""Services for recurrence runs."""

from ledger_batch.services.recurrence_engine import RecurrenceEngine
from ledger_batch.services.retention_purger import RetentionPurger
from ledger_batch.services.scheduler import RecurrenceScheduler

__all__ = [
    "RecurrenceEngine",
    "RecurrenceScheduler",
    "RetentionPurger",
]
