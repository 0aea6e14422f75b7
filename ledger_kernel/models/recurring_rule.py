"""
Module: ledger_kernel.models.recurring_rule
Responsibility: ORM persistence for recurring rules -- stored templates that
    the recurrence run turns into ledger transactions.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - interval_n >= 1 (ck_recurring_rule_interval).
    - next_due_date >= first_due_date (ck_recurring_rule_next_due).
    - next_due_date only moves forward, and only via the recurrence run.
    - active only flips True -> False via the recurrence run; reactivation is
      an external edit.
    - The recurrence run never deletes a rule.

Frequency is stored as free text and deliberately not CHECK-constrained:
an unknown value must stay observable to the run, which logs it and leaves
the rule where it is.
"""

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.models.tag import Tag, recurring_rule_tags

if TYPE_CHECKING:
    from ledger_kernel.domain.dtos import RecurringRuleInfo


class RecurringRule(TrackedBase):
    """
    A periodic ledger entry template (subscription, salary, bill).

    Contract:
        The rule is due when ``active`` and ``next_due_date <= as_of``.  Each
        due occurrence becomes one LedgerTransaction dated ``next_due_date``.
    """

    __tablename__ = "recurring_rules"

    __table_args__ = (
        CheckConstraint("interval_n >= 1", name="ck_recurring_rule_interval"),
        CheckConstraint(
            "next_due_date >= first_due_date",
            name="ck_recurring_rule_next_due",
        ),
        Index("idx_recurring_rule_due", "active", "next_due_date"),
        Index("idx_recurring_rule_owner", "owner_id"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Signed amount in minor currency units (pence, cents)
    amount: Mapped[int] = mapped_column(nullable=False)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    frequency: Mapped[str] = mapped_column(String(20), nullable=False)

    interval_n: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    first_due_date: Mapped[date] = mapped_column(nullable=False)

    next_due_date: Mapped[date] = mapped_column(nullable=False)

    end_date: Mapped[date | None] = mapped_column(nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    tags: Mapped[list[Tag]] = relationship(
        Tag,
        secondary=recurring_rule_tags,
        order_by=Tag.name,
    )

    def to_dto(self) -> "RecurringRuleInfo":
        from ledger_kernel.domain.dtos import RecurringRuleInfo

        return RecurringRuleInfo(
            id=self.id,
            owner_id=self.owner_id,
            amount=self.amount,
            description=self.description,
            frequency=self.frequency,
            interval_n=self.interval_n,
            first_due_date=self.first_due_date,
            next_due_date=self.next_due_date,
            end_date=self.end_date,
            active=self.active,
            created_at=self.created_at,
            tag_ids=tuple(tag.id for tag in self.tags),
        )

    def __repr__(self) -> str:
        return (
            f"<RecurringRule {self.id} {self.frequency}x{self.interval_n} "
            f"next={self.next_due_date} active={self.active}>"
        )
