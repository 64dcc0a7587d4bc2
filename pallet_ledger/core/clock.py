"""
Clock -- injectable source of "today".

Ledger computations never call ``date.today()`` directly; they receive the
reference day from a Clock so that current-month figures are reproducible.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def today(self) -> date:
        """Get the current calendar day."""
        ...


class SystemClock(Clock):
    """Production clock returning the current UTC calendar day.

    Stored ledger dates are UTC calendar days, so "today" is taken in UTC
    as well.
    """

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class FixedClock(Clock):
    """Clock pinned to a given day, for tests and reproducible reports."""

    def __init__(self, fixed_day: date):
        """
        Args:
            fixed_day: Day returned by ``today()`` until changed.
        """
        if isinstance(fixed_day, datetime):
            fixed_day = fixed_day.date()
        self._day = fixed_day

    def today(self) -> date:
        return self._day

    def set_day(self, day: date) -> None:
        """Move the clock to a specific day."""
        self._day = day

    def advance(self, days: int = 1) -> None:
        """Advance the clock by the given number of days."""
        self._day = self._day + timedelta(days=days)
