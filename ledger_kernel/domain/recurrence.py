"""
Recurrence arithmetic -- pure next-due-date computation.

Contract:
    ``advance(current, frequency, interval_n)`` returns the next due date of a
    recurring rule.  PURE: no I/O, no clock, no hidden state.

Architecture: ledger_kernel/domain.  ZERO I/O.

Rules:
    daily    -- current + interval_n days.
    weekly   -- current + 7 * interval_n days.
    monthly  -- add interval_n calendar months; if the day-of-month does not
                exist in the target month, clamp to that month's last day
                (Jan 31 -> Feb 28/29, Mar 31 -> Apr 30).
    yearly   -- add interval_n years; Feb 29 lands on Feb 28 in a
                non-leap target year.

Clamping is computed from ``current`` only.  A rule that was clamped from
the 31st to Feb 28 continues from the 28th on its next advance; the
original day-of-month is not remembered.

Invariants enforced:
    - For every supported frequency and interval_n >= 1 the result is
      strictly later than ``current``.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from enum import Enum

from ledger_kernel.exceptions import InvalidIntervalError, UnsupportedFrequencyError


class Frequency(str, Enum):
    """Cadence of a recurring rule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def parse_frequency(value: Frequency | str) -> Frequency:
    """Coerce a stored frequency value to ``Frequency``.

    Raises:
        UnsupportedFrequencyError: If the value is not a known frequency.
    """
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(value)
    except ValueError:
        raise UnsupportedFrequencyError(str(value)) from None


def add_months(current: date, months: int) -> date:
    """Shift ``current`` by whole calendar months, clamping the day."""
    month_index = current.year * 12 + (current.month - 1) + months
    year, month_zero = divmod(month_index, 12)
    month = month_zero + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(current.day, last_day))


def add_years(current: date, years: int) -> date:
    """Shift ``current`` by whole years; Feb 29 clamps to Feb 28."""
    year = current.year + years
    if current.month == 2 and current.day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return current.replace(year=year)


def advance(current: date, frequency: Frequency | str, interval_n: int) -> date:
    """Return the next due date after ``current``.

    Args:
        current: The rule's current next_due_date.
        frequency: One of ``Frequency`` (or its stored string value).
        interval_n: Number of frequency units to step (>= 1).

    Raises:
        UnsupportedFrequencyError: Unknown frequency value.
        InvalidIntervalError: interval_n < 1.
    """
    freq = parse_frequency(frequency)
    if interval_n < 1:
        raise InvalidIntervalError(interval_n)

    if freq is Frequency.DAILY:
        return current + timedelta(days=interval_n)
    if freq is Frequency.WEEKLY:
        return current + timedelta(weeks=interval_n)
    if freq is Frequency.MONTHLY:
        return add_months(current, interval_n)
    return add_years(current, interval_n)
