"""
Calendar month keys.

Grouping key shared by entry, exit and storage summaries.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator

_MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class MonthKey:
    """A (year, month) pair rendered as "YYYY-MM".

    Ordering compares year then month, so sorted keys are chronological and
    agree with the lexicographic order of their string form.
    """
    year: int
    month: int

    def __post_init__(self):
        """Validate the month and a four digit year."""
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")
        if not 1 <= self.year <= 9999:
            raise ValueError(f"year must be between 1 and 9999, got {self.year}")

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @classmethod
    def parse(cls, value: str) -> "MonthKey":
        """Parse a "YYYY-MM" string.

        Raises:
            ValueError: If the string is not a valid month key
        """
        match = _MONTH_KEY_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Invalid month key: {value!r} (expected YYYY-MM)")
        return cls(year=int(match.group(1)), month=int(match.group(2)))

    @classmethod
    def from_date(cls, day: date) -> "MonthKey":
        return cls(year=day.year, month=day.month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def quarter(self) -> int:
        return (self.month - 1) // 3 + 1

    def next(self) -> "MonthKey":
        return MonthKey.from_date(self.last_day + timedelta(days=1))

    def contains(self, day: date) -> bool:
        return day.year == self.year and day.month == self.month


def month_range(start: MonthKey, end: MonthKey) -> Iterator[MonthKey]:
    """Yield every month from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current = current.next()
