"""
Billing period resolution.

Cost Explorer queries are always whole calendar months expressed as a
half-open `[start, end)` range: `start` is the first day of a month and
`end` is the first day of the month after it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from costboard.shared.core.exceptions import InvalidInputError

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

DEFAULT_TREND_MONTHS = 6
MIN_TREND_MONTHS = 2
MAX_TREND_MONTHS = 12

_MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


@dataclass(frozen=True, slots=True, order=True)
class CalendarMonth:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")
        if self.year < 1:
            raise ValueError(f"year must be positive, got {self.year}")

    @classmethod
    def from_date(cls, value: date) -> "CalendarMonth":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "CalendarMonth":
        """Parse a strict YYYY-MM string."""
        if not isinstance(value, str) or not MONTH_PATTERN.fullmatch(value):
            raise InvalidInputError(
                "Month must be in YYYY-MM format",
                error="Invalid month format",
                details={"month": value},
            )
        year, month = value.split("-")
        return cls(int(year), int(month))

    def shift(self, months: int) -> "CalendarMonth":
        # Work in a zero-based month index so rollover in both directions is exact.
        index = self.year * 12 + (self.month - 1) + months
        return CalendarMonth(index // 12, index % 12 + 1)

    def next(self) -> "CalendarMonth":
        return self.shift(1)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def label(self) -> str:
        """Short human label, e.g. 'Jan 2024'."""
        return f"{_MONTH_ABBREVIATIONS[self.month - 1]} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True, slots=True)
class DateRange:
    """One calendar month as a half-open [start, end) date interval."""

    month: CalendarMonth

    @classmethod
    def for_month(cls, month: CalendarMonth) -> "DateRange":
        return cls(month)

    @property
    def start(self) -> date:
        return self.month.first_day

    @property
    def end(self) -> date:
        return self.month.next().first_day

    def to_time_period(self) -> dict[str, str]:
        """Cost Explorer TimePeriod payload."""
        return {"Start": self.start.isoformat(), "End": self.end.isoformat()}


def resolve_period(requested_month: Optional[str], today: date) -> DateRange:
    """
    Resolve an optional YYYY-MM month into the range to query.

    Requests for the current month or any later month are answered with the
    current month. Malformed months raise InvalidInputError.
    """
    current = CalendarMonth.from_date(today)
    if not requested_month:
        return DateRange.for_month(current)

    requested = CalendarMonth.parse(requested_month)
    if requested.first_day >= current.first_day:
        return DateRange.for_month(current)
    return DateRange.for_month(requested)


def _coerce_count(requested_count: Any, default: int) -> int:
    if requested_count is None or isinstance(requested_count, bool):
        return default
    if isinstance(requested_count, int):
        count = requested_count
    elif isinstance(requested_count, float):
        if requested_count != requested_count:  # NaN
            return default
        count = int(requested_count)
    else:
        try:
            count = int(str(requested_count).strip())
        except ValueError:
            return default
    # A zero count means "not specified".
    return count or default


def clamp_trend_count(requested_count: Any, default: int = DEFAULT_TREND_MONTHS) -> int:
    count = _coerce_count(requested_count, default)
    return max(MIN_TREND_MONTHS, min(MAX_TREND_MONTHS, count))


def trend_window(
    requested_count: Any, today: date, default: int = DEFAULT_TREND_MONTHS
) -> list[DateRange]:
    """
    Consecutive month ranges ending with the current (in-progress) month,
    oldest first. A missing or unusable count falls back to `default`
    (Settings.TREND_DEFAULT_MONTHS in the API); the result is clamped to [2, 12].
    """
    count = clamp_trend_count(requested_count, default)
    current = CalendarMonth.from_date(today)
    return [
        DateRange.for_month(current.shift(-offset))
        for offset in range(count - 1, -1, -1)
    ]
