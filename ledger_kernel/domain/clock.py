"""
Clock -- injectable time source.

Responsibility:
    Recurrence runs, services and triggers take "now" and "today" from a
    Clock instead of calling ``datetime.now()`` or ``date.today()``.  Tests
    swap in DeterministicClock to pin created_at values and the scheduler's
    notion of the current day.

Architecture position:
    Kernel > Domain.  SystemClock is the only place the wall clock is read.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today_in(tz)`` returns the calendar date at ``now()`` in ``tz``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today_in(self, tz: tzinfo) -> date:
        """Calendar date of ``now()`` in the given timezone.

        Both recurrence triggers derive ``as_of`` through this so a run never
        depends on which trigger fired or on the host's local timezone.
        """
        current = self.now()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        return current.astimezone(tz).date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``advance_days()`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def advance(self, seconds: int = 1) -> None:
        self._advance_seconds += seconds

    def advance_days(self, days: int = 1) -> None:
        """Move the clock forward by whole days."""
        self.advance(days * 86_400)
