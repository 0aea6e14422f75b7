"""
Module: ledger_kernel.models.ledger_transaction
Responsibility: ORM persistence for ledger rows, both manually entered and
    materialized from recurring rules.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - (source_rule_id, transaction_date) is UNIQUE
      (uq_ledger_transaction_occurrence).  This is the idempotency guard for
      materialization; it is enforced by the database, not by application
      code, so concurrent or re-entrant runs cannot duplicate an occurrence.
      Manual rows have a NULL source_rule_id and are not constrained.
    - Rows with a source_rule_id are created only by the recurrence run.
    - deleted_at marks a soft delete; rows are hard-deleted only by the
      retention purge once deleted_at is older than the retention window.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.models.tag import Tag, ledger_transaction_tags

if TYPE_CHECKING:
    from ledger_kernel.domain.dtos import LedgerTransactionInfo


class LedgerTransaction(TrackedBase):
    """A single dated ledger row in minor currency units."""

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        UniqueConstraint(
            "source_rule_id",
            "transaction_date",
            name="uq_ledger_transaction_occurrence",
        ),
        Index("idx_ledger_transaction_owner_date", "owner_id", "transaction_date"),
        Index("idx_ledger_transaction_deleted_at", "deleted_at"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    amount: Mapped[int] = mapped_column(nullable=False)

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    source_rule_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("recurring_rules.id"),
        nullable=True,
    )

    # NULL = live
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    tags: Mapped[list[Tag]] = relationship(
        Tag,
        secondary=ledger_transaction_tags,
        order_by=Tag.name,
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dto(self) -> "LedgerTransactionInfo":
        from ledger_kernel.domain.dtos import LedgerTransactionInfo

        return LedgerTransactionInfo(
            id=self.id,
            owner_id=self.owner_id,
            amount=self.amount,
            transaction_date=self.transaction_date,
            note=self.note,
            source_rule_id=self.source_rule_id,
            deleted_at=self.deleted_at,
            created_at=self.created_at,
            tag_ids=tuple(tag.id for tag in self.tags),
        )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.id} {self.transaction_date} "
            f"amount={self.amount} rule={self.source_rule_id}>"
        )
