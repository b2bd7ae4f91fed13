"""
Clock abstraction for the scheduling engine.

All due-date and interval arithmetic reads the current date from an
injected clock, so scheduling is deterministic under test.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Source of the current timestamp and local calendar date."""

    def now(self) -> datetime:
        ...

    def today(self) -> date:
        ...


class SystemClock:
    """Local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return date.today()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 9, 0, 0)

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def set(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, *, days: int = 0, seconds: float = 0) -> None:
        self._now += timedelta(days=days, seconds=seconds)
