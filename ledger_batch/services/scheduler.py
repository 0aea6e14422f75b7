"""
RecurrenceScheduler -- in-process periodic trigger for recurrence runs.

Contract:
    Wakes every ``tick_interval_seconds``, works out today's date in the
    configured timezone, and calls ``RecurrenceEngine.run(as_of)`` once per
    calendar day.  A day whose run failed is retried on the next tick.

Architecture: ledger_batch/services.  The engine holds no timers; this is
    one of its external callers (the CLI is the other).

Invariants enforced:
    - All dates come from the injected Clock.
    - Graceful shutdown: the stop event doubles as the run's cancel event,
      so ``stop()`` rolls back an in-flight run rather than committing half
      of it.
"""

from __future__ import annotations

import threading
from datetime import date, tzinfo

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import get_logger

from ledger_batch.domain.types import RunResult, RunTrigger
from ledger_batch.services.recurrence_engine import RecurrenceEngine

logger = get_logger("batch.scheduler")


class RecurrenceScheduler:
    """Daily trigger for the recurrence engine.

    Contract:
        - ``tick()`` runs the engine if today's run has not succeeded yet.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a distributed scheduler (the engine's run lock covers overlap).
        - No backoff: a failed day is simply retried on the next tick.
    """

    def __init__(
        self,
        engine: RecurrenceEngine,
        timezone: tzinfo,
        clock: Clock | None = None,
        tick_interval_seconds: int = 60,
    ):
        self._engine = engine
        self._timezone = timezone
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_success: date | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> RunResult | None:
        """Run today's materialization if it has not succeeded yet.

        Returns the RunResult when a run committed, None otherwise.  Errors
        are logged, not raised.
        """
        as_of = self._clock.today_in(self._timezone)
        if self._last_success == as_of:
            return None

        try:
            result = self._engine.run(
                as_of,
                cancel_event=self._stop_event,
                trigger=RunTrigger.SCHEDULER,
            )
        except Exception:
            logger.exception(
                "scheduler_tick_failed", extra={"as_of": as_of.isoformat()},
            )
            return None

        self._last_success = as_of
        return result

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="recurrence-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the scheduler to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self) -> None:
        """Block until the background thread exits."""
        if self._thread is not None:
            self._thread.join()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def last_success(self) -> date | None:
        return self._last_success

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)
