"""
ledger_batch.domain.types -- Pure frozen dataclasses for recurrence runs.

ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID


class RunTrigger(str, Enum):
    """What started a recurrence run (recorded in logs only)."""

    SCHEDULER = "scheduler"
    ADMIN = "admin"
    DIRECT = "direct"


@dataclass(frozen=True)
class RunResult:
    """Outcome of one committed recurrence run.

    ``processed_count`` is the number of rules selected as due, including
    rules that were only deactivated and rules whose occurrence already
    existed.  The remaining counters break that figure down and are
    informational.
    """

    run_id: UUID
    as_of: date
    processed_count: int
    created_count: int = 0
    already_materialized_count: int = 0
    deactivated_count: int = 0
    unadvanced_count: int = 0  # rules left in place (unsupported frequency)
    purged_count: int = 0

    def to_dict(self) -> dict:
        return {
            "run_id": str(self.run_id),
            "as_of": self.as_of.isoformat(),
            "processed": self.processed_count,
            "created": self.created_count,
            "already_materialized": self.already_materialized_count,
            "deactivated": self.deactivated_count,
            "unadvanced": self.unadvanced_count,
            "purged": self.purged_count,
        }
