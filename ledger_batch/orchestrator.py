"""
LedgerOrchestrator -- DI container for recurrence runs and their triggers.

Contract:
    Turns a ``LedgerConfig`` into an initialized database engine, a
    ``RecurrenceEngine`` and (on request) a ``RecurrenceScheduler``.  Single
    place where batch dependencies are composed.

Architecture: ledger_batch (top-level).  The canonical entry point for
    both the CLI and the in-process scheduler.

Invariants enforced:
    - Clock injection: engine and scheduler share one Clock.
    - The same ``as_of`` derivation (clock.today_in(config timezone)) for
      every trigger.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import configure_logging, get_logger

from ledger_batch.services.recurrence_engine import RecurrenceEngine
from ledger_batch.services.retention_purger import RetentionPurger
from ledger_batch.services.scheduler import RecurrenceScheduler

if TYPE_CHECKING:
    from ledger_config import LedgerConfig

logger = get_logger("batch.orchestrator")


class LedgerOrchestrator:
    """DI container for the recurrence system.

    Contract:
        - ``from_config()`` initializes the engine and returns a wired
          orchestrator.
        - ``today()`` is the ``as_of`` every trigger uses.
        - ``create_scheduler()`` returns a scheduler for background use.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        config: LedgerConfig,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._engine = RecurrenceEngine(
            session_factory=session_factory,
            clock=self._clock,
            actor_id=config.actor_id,
            purger=RetentionPurger(config.retention_days),
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> LedgerOrchestrator:
        """Initialize logging and the database engine, then wire services.

        Args:
            config: Validated runtime configuration.
            clock: Optional clock for deterministic testing.
            create_schema: Create missing tables before returning.
        """
        configure_logging(level=config.log_level)
        init_engine_from_url(
            config.database_url,
            echo=config.echo,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
        )
        if create_schema:
            create_tables()

        logger.info(
            "orchestrator_ready",
            extra={"timezone": config.timezone, "actor_id": str(config.actor_id)},
        )
        return cls(config=config, session_factory=get_session_factory(), clock=clock)

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def today(self) -> date:
        """Current calendar date in the configured timezone."""
        return self._clock.today_in(self._config.tz)

    def create_scheduler(self) -> RecurrenceScheduler:
        return RecurrenceScheduler(
            engine=self._engine,
            timezone=self._config.tz,
            clock=self._clock,
            tick_interval_seconds=self._config.tick_interval_seconds,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> LedgerConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def engine(self) -> RecurrenceEngine:
        return self._engine

    @property
    def session_factory(self) -> Callable[[], Session]:
        return self._session_factory

    @property
    def actor_id(self) -> UUID:
        return self._config.actor_id
