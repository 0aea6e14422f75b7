"""
RetentionPurger -- permanent removal of expired soft-deleted rows.

Contract:
    ``purge_before(store, cutoff)`` hard-deletes every ledger transaction
    whose deleted_at is set and earlier than ``cutoff``.  It runs inside the
    caller's unit of work; a failure here rolls back the whole run.

Architecture: ledger_batch/services.  Talks to storage only through the
    LedgerStore capability it is handed.
"""

from __future__ import annotations

from datetime import date, timedelta

from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.ledger_store import LedgerStore

logger = get_logger("batch.retention_purger")

DEFAULT_RETENTION_DAYS = 30


class RetentionPurger:
    """Applies the soft-delete retention window."""

    def __init__(self, retention_days: int = DEFAULT_RETENTION_DAYS):
        if retention_days < 0:
            raise ValueError(f"retention_days must be >= 0, got {retention_days}")
        self._retention_days = retention_days

    @property
    def retention_days(self) -> int:
        return self._retention_days

    def cutoff_for(self, as_of: date) -> date:
        """Rows soft-deleted before this date are past retention."""
        return as_of - timedelta(days=self._retention_days)

    def purge_before(self, store: LedgerStore, cutoff: date) -> int:
        """Hard-delete soft-deleted rows older than ``cutoff``.

        Returns the number of transactions removed.
        """
        purged = store.purge_soft_deleted_before(cutoff)
        logger.info(
            "soft_deleted_purged",
            extra={"cutoff": cutoff.isoformat(), "purged_count": purged},
        )
        return purged
