"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for the ledger schema.  Every table gets a
    uuid4 primary key; tracked tables also carry who/when audit columns.
Architecture position: Kernel > DB.  Imported by every model; imports nothing
    from models/, services/, selectors/ or domain/.

Column conventions (type_annotation_map):
    - ``int`` is BigInteger.  Amounts are signed minor currency units, never
      floats.
    - ``date`` is Date.  Due dates and transaction dates carry no time or
      timezone.
    - ``datetime`` is UTCDateTime.  Values are stored in UTC and always read
      back aware, on SQLite as well as PostgreSQL.
    - ``UUID`` is UUIDString, the canonical 36-character text form, so
      ordering by id is identical on PostgreSQL and SQLite.
"""

from datetime import UTC, date, datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as its hyphenated String(36) form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime normalised to UTC.

    SQLite keeps no offset, so values are converted to UTC on the way in
    and tagged as UTC on the way out.  Naive input is taken to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` plus the column type conventions."""

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        date: Date,
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base for rows that record their creator.

    Guarantees:
        - created_at falls back to the database clock only when the writer
          does not supply one; services and the recurrence run always do.
        - created_by_id is NOT NULL.
        - updated_at / updated_by_id change on every engine or service edit.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
