"""
Data transfer objects returned by the ledger kernel.

All DTOs are frozen dataclasses with tuples for collections so they can be
handed across layer boundaries without exposing ORM instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID


@dataclass(frozen=True)
class RecurringRuleInfo:
    """Immutable snapshot of a recurring rule."""

    id: UUID
    owner_id: UUID
    amount: int  # minor currency units, signed
    description: str | None
    frequency: str
    interval_n: int
    first_due_date: date
    next_due_date: date
    end_date: date | None
    active: bool
    created_at: datetime | None
    tag_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class LedgerTransactionInfo:
    """Immutable snapshot of a ledger transaction."""

    id: UUID
    owner_id: UUID
    amount: int
    transaction_date: date
    note: str | None
    source_rule_id: UUID | None
    deleted_at: datetime | None
    created_at: datetime | None
    tag_ids: tuple[UUID, ...] = ()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_materialized(self) -> bool:
        """True when the row was created by the recurrence run."""
        return self.source_rule_id is not None


@dataclass(frozen=True)
class TagInfo:
    id: UUID
    name: str


@dataclass(frozen=True)
class OccurrenceInsert:
    """Outcome of an idempotent occurrence insert.

    ``created`` is False when the (rule, date) occurrence already existed;
    ``transaction_id`` is then None.
    """

    created: bool
    transaction_id: UUID | None = None
