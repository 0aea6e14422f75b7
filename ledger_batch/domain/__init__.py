"""
ledger_batch.domain -- Pure types for recurrence runs.

ZERO I/O.  All types are frozen dataclasses.
"""

from ledger_batch.domain.types import RunResult, RunTrigger

__all__ = [
    "RunResult",
    "RunTrigger",
]
