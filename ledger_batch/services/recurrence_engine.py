"""
RecurrenceEngine -- materializes due recurring rules as ledger transactions.

Contract:
    ``run(as_of)`` executes one all-or-nothing unit of work:

        1. select active rules with next_due_date <= as_of (ordered by
           next_due_date, then id; locked FOR UPDATE where supported);
        2. per rule: deactivate if end_date < as_of, otherwise insert the
           occurrence dated next_due_date (a no-op if it already exists),
           copy the rule's tags onto a newly created row, and advance
           next_due_date;
        3. purge soft-deleted rows older than as_of - retention_days;
        4. commit and return a RunResult whose processed_count is the
           number of rules selected in step 1.

Architecture: ledger_batch/services.  Imports from ledger_kernel only.
    ``run()`` owns the session; ``process()`` holds the orchestration and
    receives the LedgerStore capability, so it can be driven directly in
    tests.

Invariants enforced:
    - Atomicity: any exception rolls the whole run back.
    - Serialization: a process-wide lock plus LedgerStore.acquire_run_lock().
    - Idempotency: the occurrence insert is guarded by the storage-level
      UNIQUE constraint; a duplicate is "already materialized".
    - next_due_date advances even when the occurrence already existed.
    - Clock injection: created_at of engine-made rows comes from the clock.

Failure modes:
    - StoreUnavailableError: transport failure (wraps OperationalError,
      InterfaceError, DisconnectionError).  Nothing committed.
    - RunCancelledError: the cancel event was set mid-run.  Nothing
      committed.
    - Anything else propagates unchanged after rollback.  No retry here.

Unsupported frequency:
    A rule whose stored frequency the advancer does not recognise keeps its
    next_due_date (and so stays due on every later run).  The engine logs
    ``unsupported_frequency`` at WARNING for it and carries on.
"""

from __future__ import annotations

import threading
import time
from datetime import date
from typing import Callable
from uuid import UUID, uuid4

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import transaction_scope
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.recurrence import advance
from ledger_kernel.exceptions import (
    RunCancelledError,
    StoreUnavailableError,
    UnsupportedFrequencyError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.recurring_rule import RecurringRule
from ledger_kernel.services.ledger_store import LedgerStore

from ledger_batch.domain.types import RunResult, RunTrigger
from ledger_batch.services.retention_purger import DEFAULT_RETENTION_DAYS, RetentionPurger

logger = get_logger("batch.recurrence_engine")

# Serializes runs within this process; the database lock covers the rest.
_RUN_LOCK = threading.Lock()

_TRANSPORT_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


class _RuleOutcome:
    __slots__ = ("created", "already_materialized", "deactivated", "advanced")

    def __init__(self) -> None:
        self.created = False
        self.already_materialized = False
        self.deactivated = False
        self.advanced = False


class RecurrenceEngine:
    """Runs recurrence materialization for a given calendar date."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        purger: RetentionPurger | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or uuid4()
        self._purger = purger or RetentionPurger(retention_days)

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def actor_id(self) -> UUID:
        return self._actor_id

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(
        self,
        as_of: date,
        cancel_event: threading.Event | None = None,
        trigger: RunTrigger | str = RunTrigger.DIRECT,
    ) -> RunResult:
        """Materialize everything due on or before ``as_of`` and commit.

        Args:
            as_of: Calendar date the run evaluates against.
            cancel_event: Checked before each rule; when set the run raises
                RunCancelledError and rolls back.
            trigger: Recorded in the log context only.  The outcome never
                depends on it.

        Raises:
            StoreUnavailableError: The store could not be reached.
            RunCancelledError: Cancelled before commit.
        """
        run_id = uuid4()
        trigger_name = RunTrigger(trigger).value

        with LogContext.bind(
            run_id=str(run_id),
            actor_id=str(self._actor_id),
            trigger=trigger_name,
        ):
            with _RUN_LOCK:
                try:
                    with transaction_scope(self._session_factory) as session:
                        # The store never outlives this unit of work.
                        store = LedgerStore(
                            session, clock=self._clock, actor_id=self._actor_id,
                        )
                        store.acquire_run_lock()
                        return self.process(
                            store, as_of, cancel_event=cancel_event, run_id=run_id,
                        )
                except _TRANSPORT_ERRORS as exc:
                    reason = str(getattr(exc, "orig", None) or exc)
                    logger.error(
                        "recurrence_run_store_unavailable",
                        extra={"as_of": as_of.isoformat(), "reason": reason},
                    )
                    raise StoreUnavailableError("recurrence run", reason) from exc

    def process(
        self,
        store: LedgerStore,
        as_of: date,
        cancel_event: threading.Event | None = None,
        run_id: UUID | None = None,
    ) -> RunResult:
        """Orchestrate one run against ``store``.  Does not commit."""
        run_id = run_id or uuid4()
        start_time = time.monotonic()

        rules = store.find_active_rules_due_by(as_of)
        logger.info(
            "recurrence_run_started",
            extra={"as_of": as_of.isoformat(), "due_rule_count": len(rules)},
        )

        created = already = deactivated = unadvanced = 0

        for index, rule in enumerate(rules):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "recurrence_run_cancelled",
                    extra={"as_of": as_of.isoformat(), "rules_done": index},
                )
                raise RunCancelledError(as_of.isoformat(), index)

            with LogContext.bind(rule_id=str(rule.id)):
                outcome = self._process_rule(store, rule, as_of)

            if outcome.deactivated:
                deactivated += 1
                continue
            if outcome.created:
                created += 1
            if outcome.already_materialized:
                already += 1
            if not outcome.advanced:
                unadvanced += 1

        purged = self._purger.purge_before(store, self._purger.cutoff_for(as_of))

        result = RunResult(
            run_id=run_id,
            as_of=as_of,
            processed_count=len(rules),
            created_count=created,
            already_materialized_count=already,
            deactivated_count=deactivated,
            unadvanced_count=unadvanced,
            purged_count=purged,
        )

        logger.info(
            "recurrence_run_completed",
            extra={
                "as_of": as_of.isoformat(),
                "processed_count": result.processed_count,
                "created_count": created,
                "already_materialized_count": already,
                "deactivated_count": deactivated,
                "unadvanced_count": unadvanced,
                "purged_count": purged,
                "duration_ms": int((time.monotonic() - start_time) * 1000),
            },
        )
        return result

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _process_rule(
        self, store: LedgerStore, rule: RecurringRule, as_of: date,
    ) -> _RuleOutcome:
        outcome = _RuleOutcome()
        rule_id = rule.id
        occurrence_date = rule.next_due_date

        if rule.end_date is not None and rule.end_date < as_of:
            store.deactivate_rule(rule_id)
            outcome.deactivated = True
            logger.info(
                "rule_deactivated",
                extra={
                    "end_date": rule.end_date.isoformat(),
                    "as_of": as_of.isoformat(),
                },
            )
            return outcome

        inserted = store.insert_transaction_if_absent(rule, occurrence_date)
        if inserted.created:
            copied = store.copy_rule_tags_to_transaction(
                rule_id, inserted.transaction_id,
            )
            outcome.created = True
            logger.info(
                "occurrence_created",
                extra={
                    "transaction_id": str(inserted.transaction_id),
                    "occurrence_date": occurrence_date.isoformat(),
                    "tags_copied": copied,
                },
            )
        else:
            outcome.already_materialized = True
            logger.info(
                "occurrence_already_materialized",
                extra={"occurrence_date": occurrence_date.isoformat()},
            )

        try:
            next_due = advance(occurrence_date, rule.frequency, rule.interval_n)
        except UnsupportedFrequencyError as exc:
            logger.warning(
                "unsupported_frequency",
                extra={
                    "frequency": exc.frequency,
                    "next_due_date": occurrence_date.isoformat(),
                },
            )
            return outcome

        store.advance_rule_next_due(rule_id, next_due)
        outcome.advanced = True
        logger.info(
            "rule_advanced",
            extra={
                "from_date": occurrence_date.isoformat(),
                "to_date": next_due.isoformat(),
            },
        )
        return outcome
