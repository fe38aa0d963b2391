"""Simulation calendar.

A single mutable date shared by the whole ensemble, advanced one week at
a time. Weather and seasonality depend only on the calendar week, never
on replica state.

The simulation runs from January 1 of the start year to December 31 of
the end year. The week whose 7-day advance would cross into the next
year is the year boundary at which queued weeks are resolved.
"""

from __future__ import annotations

import datetime
import functools

DAYS_PER_WEEK = 7


@functools.total_ordering
class SimulationDate:
    """Mutable calendar date with weekly advance.

    Args:
        year: Calendar year.
        month: Month (1-12).
        day: Day of month.
    """

    def __init__(self, year: int, month: int, day: int):
        self._date = datetime.date(year, month, day)

    @classmethod
    def start_of(cls, year: int) -> 'SimulationDate':
        return cls(year, 1, 1)

    @classmethod
    def end_of(cls, year: int) -> 'SimulationDate':
        return cls(year, 12, 31)

    @property
    def year(self) -> int:
        return self._date.year

    @property
    def month(self) -> int:
        return self._date.month

    @property
    def day(self) -> int:
        return self._date.day

    def advance_by_week(self) -> None:
        """Add 7 days in place (month/year rollover, leap years included)."""
        self._date += datetime.timedelta(days=DAYS_PER_WEEK)

    def is_year_end(self) -> bool:
        """True in the last week of the year (next advance changes year)."""
        return self.month == 12 and self.day + DAYS_PER_WEEK > 31

    def in_season(self, last_month: int = 9) -> bool:
        """True when the month is within the active spread season."""
        return self.month <= last_month

    def to_date(self) -> datetime.date:
        return self._date

    def copy(self) -> 'SimulationDate':
        return SimulationDate(self.year, self.month, self.day)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SimulationDate):
            return NotImplemented
        return self._date == other._date

    def __lt__(self, other) -> bool:
        if not isinstance(other, SimulationDate):
            return NotImplemented
        return self._date < other._date

    __hash__ = None

    def __str__(self) -> str:
        return self._date.isoformat()

    def __repr__(self) -> str:
        return f"SimulationDate({self.year}, {self.month}, {self.day})"
