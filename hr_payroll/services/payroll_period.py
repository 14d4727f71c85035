"""
Payroll Period Resolver

Pure calendar helpers used by payslip generation. Nothing here touches the
database. Timestamps are mapped onto the calendar through an explicit
reference timezone instead of the server's local time.
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from typing import Optional, Tuple

from hr_payroll.core.exceptions import ValidationError

SATURDAY = 5
SUNDAY = 6


def validate_period(month, year) -> None:
    if month is None or year is None:
        raise ValidationError("month and year are required")
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")
    if not isinstance(year, int) or not 1900 <= year <= 9999:
        raise ValidationError(f"year is out of range: {year}")


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of the month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def weekend_days(year: int, month: int) -> int:
    return sum(
        1
        for day in range(1, days_in_month(year, month) + 1)
        if date(year, month, day).weekday() in (SATURDAY, SUNDAY)
    )


def working_days(year: int, month: int) -> int:
    """Days in the month minus Saturdays and Sundays. Holidays are not considered."""
    return days_in_month(year, month) - weekend_days(year, month)


def clip_range(
    from_date: date,
    to_date: date,
    period_start: date,
    period_end: date
) -> Optional[Tuple[date, date]]:
    """
    Intersect [from_date, to_date] with [period_start, period_end].
    Returns None when the ranges do not overlap.
    """
    start = max(from_date, period_start)
    end = min(to_date, period_end)
    if start > end:
        return None
    return start, end


def inclusive_day_count(start: date, end: date) -> int:
    return (end - start).days + 1


def local_midnight_utc(day: date, tz: tzinfo) -> datetime:
    """Instant a calendar day begins in the reference timezone, as UTC."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


@dataclass(frozen=True)
class PayrollPeriod:
    """A calendar month; attendance and leave are calendar dates inside it."""
    year: int
    month: int

    def __post_init__(self):
        validate_period(self.month, self.year)

    @property
    def start(self) -> date:
        return month_bounds(self.year, self.month)[0]

    @property
    def end(self) -> date:
        return month_bounds(self.year, self.month)[1]

    @property
    def total_days(self) -> int:
        return days_in_month(self.year, self.month)

    @property
    def weekend_days(self) -> int:
        return weekend_days(self.year, self.month)

    @property
    def working_days(self) -> int:
        return working_days(self.year, self.month)

    def clip(self, from_date: date, to_date: date) -> Optional[Tuple[date, date]]:
        return clip_range(from_date, to_date, self.start, self.end)

    def __str__(self):
        return f"{self.month:02d}/{self.year}"
