"""
Module: ledger_kernel.models.tag
Responsibility: ORM persistence for tags and the two many-to-many association
    tables that attach tags to recurring rules and ledger transactions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Tag names are unique (uq_tag_name).
    - A tag is attached to a given rule / transaction at most once
      (composite primary keys on the association tables).
"""

from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.domain.dtos import TagInfo


recurring_rule_tags = Table(
    "recurring_rule_tags",
    Base.metadata,
    Column(
        "rule_id",
        UUIDString(),
        ForeignKey("recurring_rules.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        UUIDString(),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


ledger_transaction_tags = Table(
    "ledger_transaction_tags",
    Base.metadata,
    Column(
        "transaction_id",
        UUIDString(),
        ForeignKey("ledger_transactions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        UUIDString(),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Tag(TrackedBase):
    """Free-form categorisation label shared by rules and transactions."""

    __tablename__ = "tags"

    __table_args__ = (
        UniqueConstraint("name", name="uq_tag_name"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def to_dto(self) -> "TagInfo":
        from ledger_kernel.domain.dtos import TagInfo

        return TagInfo(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<Tag {self.name}>"
