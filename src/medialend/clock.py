"""Date provider used for loan dates, due dates and reminders.

The registry never calls ``date.today()`` directly so that tests and the
CLI can substitute a simulated clock.
"""

from datetime import date, timedelta
from typing import Optional


class Clock:
    """Supplies the current day and day arithmetic."""

    def today(self) -> date:
        raise NotImplementedError

    def add_days(self, day: date, days: int) -> date:
        """Return ``day`` shifted by ``days`` (may be negative)."""
        return day + timedelta(days=days)


class SystemClock(Clock):
    """Clock backed by the system date."""

    def today(self) -> date:
        return date.today()


class SimulatedClock(Clock):
    """Clock pinned to a chosen day that only moves when told to.

    Example:
        >>> clock = SimulatedClock(date(2025, 1, 1))
        >>> clock.advance(14)
        datetime.date(2025, 1, 15)
    """

    def __init__(self, start: Optional[date] = None):
        self._today = start or date.today()

    def today(self) -> date:
        return self._today

    def advance(self, days: int = 1) -> date:
        """Move the clock forward and return the new day."""
        self._today = self.add_days(self._today, days)
        return self._today

    def set(self, day: date) -> None:
        self._today = day


def days_between(start: date, end: date) -> int:
    """Number of whole days from ``start`` to ``end`` (negative if end is earlier)."""
    return (end - start).days
