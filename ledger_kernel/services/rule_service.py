"""
RuleService -- external write path for rules, tags and manual transactions.

Contract:
    Creates and edits recurring rules, tags and manually entered ledger
    transactions, and soft-deletes / restores transactions.  Flush-only:
    the caller owns commit/rollback.

Architecture: ledger_kernel/services.

Invariants enforced:
    - New rules start active with next_due_date == first_due_date.
    - External edits never move next_due_date or deactivate a rule; those
      transitions belong to the recurrence run.  ``reactivate_rule`` is the
      one external lifecycle edit.
    - Manual transactions have source_rule_id = NULL unless the caller is
      backfilling a specific occurrence, which then goes through the same
      (source_rule_id, transaction_date) guard as the recurrence run.
    - Soft delete stamps deleted_at from the injected clock; it never
      hard-deletes.

Failure modes:
    - RuleValidationError for rejected input (frequency, interval,
      description, dates).
    - RuleNotFoundError / TransactionNotFoundError / TagNotFoundError for
      unknown ids.
    - TagAlreadyExistsError for a duplicate tag name.
    - DuplicateOccurrenceError when a backfilled occurrence already exists.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.domain.dtos import LedgerTransactionInfo, RecurringRuleInfo, TagInfo
from ledger_kernel.domain.recurrence import Frequency
from ledger_kernel.exceptions import (
    DuplicateOccurrenceError,
    RuleNotFoundError,
    RuleValidationError,
    TagAlreadyExistsError,
    TagNotFoundError,
    TransactionNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.ledger_transaction import LedgerTransaction
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.models.tag import Tag
from ledger_kernel.services.base import BaseService

logger = get_logger("services.rule_service")

MAX_INTERVAL = 365
MAX_DESCRIPTION_LENGTH = 255
MAX_TAG_NAME_LENGTH = 100

_UNSET = object()


def _validate_frequency(frequency: Frequency | str) -> str:
    try:
        return Frequency(frequency).value
    except ValueError:
        raise RuleValidationError(
            "frequency",
            f"must be one of {', '.join(f.value for f in Frequency)}; got {frequency!r}",
        ) from None


def _validate_interval(interval_n: int) -> int:
    if isinstance(interval_n, bool) or not isinstance(interval_n, int):
        raise RuleValidationError("interval_n", "must be an integer")
    if not 1 <= interval_n <= MAX_INTERVAL:
        raise RuleValidationError(
            "interval_n", f"must be between 1 and {MAX_INTERVAL}; got {interval_n}",
        )
    return interval_n


def _validate_description(description: str) -> str:
    text = (description or "").strip()
    if not text:
        raise RuleValidationError("description", "must not be empty")
    if len(text) > MAX_DESCRIPTION_LENGTH:
        raise RuleValidationError(
            "description", f"must be at most {MAX_DESCRIPTION_LENGTH} characters",
        )
    return text


def _validate_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise RuleValidationError("amount", "must be an integer number of minor units")
    return amount


class RuleService(BaseService):
    """Write-side operations invoked by users (not by the recurrence run)."""

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    def create_tag(self, name: str) -> TagInfo:
        clean = (name or "").strip()
        if not clean or len(clean) > MAX_TAG_NAME_LENGTH:
            raise RuleValidationError(
                "tag name", f"must be 1-{MAX_TAG_NAME_LENGTH} characters",
            )

        existing = self.session.execute(
            select(Tag).where(Tag.name == clean)
        ).scalar_one_or_none()
        if existing is not None:
            raise TagAlreadyExistsError(clean)

        tag = Tag(
            name=clean,
            created_at=self.clock.now(),
            created_by_id=self.actor_id,
        )
        self.session.add(tag)
        self.session.flush()
        logger.info("tag_created", extra={"tag_id": str(tag.id), "tag_name": clean})
        return tag.to_dto()

    def _load_tags(self, tag_ids: Iterable[UUID]) -> list[Tag]:
        wanted = list(dict.fromkeys(tag_ids))
        if not wanted:
            return []
        found = {
            tag.id: tag
            for tag in self.session.execute(
                select(Tag).where(Tag.id.in_(wanted))
            ).scalars()
        }
        for tag_id in wanted:
            if tag_id not in found:
                raise TagNotFoundError(str(tag_id))
        return [found[tag_id] for tag_id in wanted]

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def _get_rule(self, rule_id: UUID) -> RecurringRule:
        rule = self.session.get(RecurringRule, rule_id)
        if rule is None:
            raise RuleNotFoundError(str(rule_id))
        return rule

    def create_rule(
        self,
        owner_id: UUID,
        amount: int,
        description: str,
        frequency: Frequency | str,
        interval_n: int,
        first_due_date: date,
        end_date: date | None = None,
        tag_ids: Iterable[UUID] = (),
    ) -> RecurringRuleInfo:
        """Create an active rule whose first occurrence is first_due_date."""
        if end_date is not None and end_date < first_due_date:
            raise RuleValidationError(
                "end_date", "must not be earlier than first_due_date",
            )

        rule = RecurringRule(
            owner_id=owner_id,
            amount=_validate_amount(amount),
            description=_validate_description(description),
            frequency=_validate_frequency(frequency),
            interval_n=_validate_interval(interval_n),
            first_due_date=first_due_date,
            next_due_date=first_due_date,
            end_date=end_date,
            active=True,
            created_at=self.clock.now(),
            created_by_id=self.actor_id,
        )
        rule.tags = self._load_tags(tag_ids)
        self.session.add(rule)
        self.session.flush()

        logger.info(
            "rule_created",
            extra={
                "rule_id": str(rule.id),
                "frequency": rule.frequency,
                "interval_n": rule.interval_n,
                "first_due_date": first_due_date.isoformat(),
            },
        )
        return rule.to_dto()

    def update_rule(
        self,
        rule_id: UUID,
        *,
        amount: int | object = _UNSET,
        description: str | object = _UNSET,
        frequency: Frequency | str | object = _UNSET,
        interval_n: int | object = _UNSET,
        end_date: date | None | object = _UNSET,
    ) -> RecurringRuleInfo:
        """Edit a rule's template fields.  Omitted fields are left alone.

        Pass ``end_date=None`` to clear the end date.
        """
        rule = self._get_rule(rule_id)

        if amount is not _UNSET:
            rule.amount = _validate_amount(amount)
        if description is not _UNSET:
            rule.description = _validate_description(description)
        if frequency is not _UNSET:
            rule.frequency = _validate_frequency(frequency)
        if interval_n is not _UNSET:
            rule.interval_n = _validate_interval(interval_n)
        if end_date is not _UNSET:
            if end_date is not None and end_date < rule.first_due_date:
                raise RuleValidationError(
                    "end_date", "must not be earlier than first_due_date",
                )
            rule.end_date = end_date

        rule.updated_at = self.clock.now()
        rule.updated_by_id = self.actor_id
        self.session.flush()
        logger.info("rule_updated", extra={"rule_id": str(rule_id)})
        return rule.to_dto()

    def set_rule_tags(self, rule_id: UUID, tag_ids: Iterable[UUID]) -> RecurringRuleInfo:
        """Replace the rule's tag set.

        Only future occurrences pick up the new set; already materialized
        transactions keep the tags they were created with.
        """
        rule = self._get_rule(rule_id)
        rule.tags = self._load_tags(tag_ids)
        rule.updated_at = self.clock.now()
        rule.updated_by_id = self.actor_id
        self.session.flush()
        return rule.to_dto()

    def reactivate_rule(self, rule_id: UUID) -> RecurringRuleInfo:
        """Flip an inactive rule back to active (external edit only)."""
        rule = self._get_rule(rule_id)
        if not rule.active:
            rule.active = True
            rule.updated_at = self.clock.now()
            rule.updated_by_id = self.actor_id
            self.session.flush()
            logger.info("rule_reactivated", extra={"rule_id": str(rule_id)})
        return rule.to_dto()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _get_transaction(self, transaction_id: UUID) -> LedgerTransaction:
        txn = self.session.get(LedgerTransaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def record_transaction(
        self,
        owner_id: UUID,
        amount: int,
        transaction_date: date,
        note: str | None = None,
        tag_ids: Iterable[UUID] = (),
        source_rule_id: UUID | None = None,
    ) -> LedgerTransactionInfo:
        """Enter a manual ledger row.

        ``source_rule_id`` is normally left as None.  Setting it backfills a
        specific occurrence of that rule by hand; if the recurrence run (or
        an earlier backfill) already produced that occurrence,
        DuplicateOccurrenceError is raised and nothing is written.
        """
        if source_rule_id is not None:
            self._get_rule(source_rule_id)

        txn = LedgerTransaction(
            owner_id=owner_id,
            amount=_validate_amount(amount),
            transaction_date=transaction_date,
            note=note,
            source_rule_id=source_rule_id,
            created_at=self.clock.now(),
            created_by_id=self.actor_id,
        )
        txn.tags = self._load_tags(tag_ids)

        savepoint = self.session.begin_nested()
        try:
            self.session.add(txn)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            if source_rule_id is None:
                raise
            raise DuplicateOccurrenceError(
                str(source_rule_id), transaction_date.isoformat(),
            ) from None
        savepoint.commit()

        logger.info(
            "transaction_recorded",
            extra={
                "transaction_id": str(txn.id),
                "transaction_date": transaction_date.isoformat(),
                "source_rule_id": str(source_rule_id) if source_rule_id else None,
            },
        )
        return txn.to_dto()

    def soft_delete_transaction(self, transaction_id: UUID) -> LedgerTransactionInfo:
        """Mark a row deleted.  Already-deleted rows keep their timestamp."""
        txn = self._get_transaction(transaction_id)
        if txn.deleted_at is None:
            txn.deleted_at = self.clock.now()
            txn.updated_at = self.clock.now()
            txn.updated_by_id = self.actor_id
            self.session.flush()
            logger.info(
                "transaction_soft_deleted",
                extra={"transaction_id": str(transaction_id)},
            )
        return txn.to_dto()

    def restore_transaction(self, transaction_id: UUID) -> LedgerTransactionInfo:
        """Undo a soft delete (only possible before the retention purge)."""
        txn = self._get_transaction(transaction_id)
        if txn.deleted_at is not None:
            txn.deleted_at = None
            txn.updated_at = self.clock.now()
            txn.updated_by_id = self.actor_id
            self.session.flush()
            logger.info(
                "transaction_restored",
                extra={"transaction_id": str(transaction_id)},
            )
        return txn.to_dto()
