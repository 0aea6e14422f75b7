"""
LedgerStore -- transaction-scoped persistence boundary for the recurrence run.

Contract:
    A LedgerStore wraps ONE session for ONE unit of work.  It is created by
    the caller that owns the transaction, handed to the orchestration code
    as a capability, and discarded when the unit of work ends.  It never
    commits.

Architecture: ledger_kernel/services.  Imports from db/, models/, domain/
    and exceptions only.

Invariants enforced:
    - Idempotency guard: ``insert_transaction_if_absent`` relies on the
      database UNIQUE constraint on (source_rule_id, transaction_date).  A
      violation is rolled back to a SAVEPOINT and reported as
      ``created=False`` -- never raised.
    - Run serialization: ``acquire_run_lock`` takes a transaction-scoped
      PostgreSQL advisory lock; due rules are selected FOR UPDATE.  SQLite
      serializes the run through BEGIN IMMEDIATE, requested by
      ``acquire_run_lock`` (see db/engine.py); other sessions stay DEFERRED.
    - Retention: only rows with deleted_at set and older than the cutoff
      are hard-deleted.

Failure modes:
    - RuleNotFoundError when advancing/deactivating a missing rule.
    - IntegrityError from any constraint other than the occurrence guard
      propagates unchanged.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from uuid import UUID

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.engine import SQLITE_BEGIN_OPTION
from ledger_kernel.domain.dtos import OccurrenceInsert
from ledger_kernel.exceptions import RuleNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.ledger_transaction import LedgerTransaction
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.models.tag import ledger_transaction_tags, recurring_rule_tags
from ledger_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")

# Advisory lock key shared by every process running recurrence.
RECURRENCE_RUN_LOCK_KEY = 7_310_422


class LedgerStore(BaseService):
    """Persistence operations the recurrence run needs, on one session."""

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def acquire_run_lock(self) -> None:
        """Serialize recurrence runs across processes for this transaction.

        PostgreSQL: ``pg_advisory_xact_lock`` (released on commit/rollback).
        SQLite: the session's transaction is opened with BEGIN IMMEDIATE, so
        the write lock is held before the due rules are read.  Call this
        before the session's first statement; on a transaction that has
        already begun, the write lock is only taken at the first write.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            self.session.execute(
                select(func.pg_advisory_xact_lock(RECURRENCE_RUN_LOCK_KEY))
            )
        elif dialect == "sqlite" and self.session.get_transaction() is None:
            self.session.connection(
                execution_options={SQLITE_BEGIN_OPTION: "IMMEDIATE"}
            )
        logger.debug("run_lock_acquired", extra={"dialect": dialect})

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find_active_rules_due_by(self, as_of: date) -> list[RecurringRule]:
        """Active rules with next_due_date <= as_of.

        Ordered by next_due_date, then rule id, so processing order is
        deterministic.
        """
        return list(
            self.session.execute(
                select(RecurringRule)
                .where(
                    RecurringRule.active == True,  # noqa: E712
                    RecurringRule.next_due_date <= as_of,
                )
                .order_by(
                    RecurringRule.next_due_date.asc(),
                    RecurringRule.id.asc(),
                )
                .with_for_update()
            ).scalars().all()
        )

    def find_occurrence(
        self, rule_id: UUID, occurrence_date: date,
    ) -> LedgerTransaction | None:
        """The transaction materialized for (rule, date), deleted or not."""
        return self.session.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.source_rule_id == rule_id,
                LedgerTransaction.transaction_date == occurrence_date,
            )
        ).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert_transaction_if_absent(
        self, rule: RecurringRule, occurrence_date: date,
    ) -> OccurrenceInsert:
        """Materialize one occurrence of ``rule`` dated ``occurrence_date``.

        The INSERT runs inside a SAVEPOINT so a uniqueness violation only
        discards this row, not the surrounding unit of work.  A soft-deleted
        occurrence still counts as present.
        """
        txn = LedgerTransaction(
            owner_id=rule.owner_id,
            amount=rule.amount,
            transaction_date=occurrence_date,
            note=rule.description,
            source_rule_id=rule.id,
            created_at=self.clock.now(),
            created_by_id=self.actor_id,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(txn)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            if self.find_occurrence(rule.id, occurrence_date) is None:
                # Some other constraint failed; not a duplicate occurrence.
                raise
            logger.debug(
                "occurrence_insert_conflict",
                extra={
                    "rule_id": str(rule.id),
                    "occurrence_date": occurrence_date.isoformat(),
                },
            )
            return OccurrenceInsert(created=False)

        savepoint.commit()
        return OccurrenceInsert(created=True, transaction_id=txn.id)

    def copy_rule_tags_to_transaction(
        self, rule_id: UUID, transaction_id: UUID,
    ) -> int:
        """Attach the rule's current tag set to the transaction.

        Returns the number of tags copied.
        """
        tag_ids = self.session.execute(
            select(recurring_rule_tags.c.tag_id).where(
                recurring_rule_tags.c.rule_id == rule_id,
            )
        ).scalars().all()

        if tag_ids:
            self.session.execute(
                insert(ledger_transaction_tags),
                [
                    {"transaction_id": transaction_id, "tag_id": tag_id}
                    for tag_id in tag_ids
                ],
            )
        return len(tag_ids)

    def advance_rule_next_due(self, rule_id: UUID, new_date: date) -> None:
        """Persist a new next_due_date on the rule."""
        result = self.session.execute(
            update(RecurringRule)
            .where(RecurringRule.id == rule_id)
            .values(
                next_due_date=new_date,
                updated_at=self.clock.now(),
                updated_by_id=self.actor_id,
            )
        )
        if result.rowcount == 0:
            raise RuleNotFoundError(str(rule_id))

    def deactivate_rule(self, rule_id: UUID) -> None:
        """Set active = False.  Idempotent for already-inactive rules."""
        result = self.session.execute(
            update(RecurringRule)
            .where(RecurringRule.id == rule_id)
            .values(
                active=False,
                updated_at=self.clock.now(),
                updated_by_id=self.actor_id,
            )
        )
        if result.rowcount == 0:
            raise RuleNotFoundError(str(rule_id))

    def purge_soft_deleted_before(self, cutoff: date | datetime) -> int:
        """Hard-delete rows whose deleted_at is set and earlier than cutoff.

        A date cutoff means midnight UTC at the start of that day.  Returns
        the number of transactions removed.
        """
        if not isinstance(cutoff, datetime):
            cutoff = datetime.combine(cutoff, time.min, tzinfo=UTC)

        expired = (
            select(LedgerTransaction.id)
            .where(
                LedgerTransaction.deleted_at.is_not(None),
                LedgerTransaction.deleted_at < cutoff,
            )
        )

        self.session.execute(
            delete(ledger_transaction_tags).where(
                ledger_transaction_tags.c.transaction_id.in_(expired),
            )
        )
        result = self.session.execute(
            delete(LedgerTransaction)
            .where(
                LedgerTransaction.deleted_at.is_not(None),
                LedgerTransaction.deleted_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
