from dataclasses import dataclass
from datetime import date
from typing import Optional

from errors import ValidationError

MIN_YEAR = 1
MAX_YEAR = 9999


def validate_year_month(year: int, month: int) -> None:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Invalid year: {year}")
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        return 31
    return (date(year, month + 1, 1) - date(year, month, 1)).days


def clamp_day(day: int, year: int, month: int) -> int:
    return min(day, days_in_month(year, month))


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def month_index(year: int, month: int) -> int:
    # Months since year 0; differences give whole-month distances.
    return year * 12 + month


@dataclass(frozen=True)
class MonthPeriod:
    year: int
    month: int

    @property
    def start(self) -> date:
        return month_start(self.year, self.month)

    @property
    def end(self) -> date:
        return month_end(self.year, self.month)

    def contains(self, value: date) -> bool:
        return value.year == self.year and value.month == self.month


def resolve_month(
    year: Optional[int],
    month: Optional[int],
    *,
    today: Optional[date] = None,
) -> MonthPeriod:
    """Month addressed by a request; falls back to the current month when unset."""
    if year is None or month is None:
        today = today or date.today()
        return MonthPeriod(today.year, today.month)
    validate_year_month(year, month)
    return MonthPeriod(year, month)
