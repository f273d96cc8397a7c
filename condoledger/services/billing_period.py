"""Billing month parsing and schedule dates."""

import calendar
from datetime import date
from typing import NamedTuple

from condoledger.services.errors import ValidationError


class BillingDates(NamedTuple):
    """Key dates of one billing month."""

    billing_month: date
    period_start: date
    period_end: date
    statement_date: date
    due_date: date


def parse_billing_month(value: str | date) -> date:
    """Parse "YYYY-MM" (or a date) into the first day of that month.

    Raises:
        ValidationError: If the value is not a valid month
    """
    if isinstance(value, date):
        return value.replace(day=1)

    if not isinstance(value, str):
        raise ValidationError(f"Billing month must be 'YYYY-MM', got {value!r}")

    parts = value.strip().split("-")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValidationError(f"Billing month must be 'YYYY-MM', got {value!r}")

    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12 or year < 1900:
        raise ValidationError(f"Billing month out of range: {value!r}")
    return date(year, month, 1)


def shift_month(month: date, offset: int) -> date:
    """Return the first day of the month ``offset`` months away from ``month``."""
    index = month.year * 12 + (month.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def _day_in_month(month: date, day: int) -> date:
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=min(day, last_day))


def billing_dates(month: date, reading_day: int, statement_day: int, due_day: int) -> BillingDates:
    """Compute the schedule of one billing month.

    The consumption period runs from the day after the previous month's
    reading day to this month's reading day; the statement goes out on
    ``statement_day`` and is due on ``due_day`` of the following month.
    """
    month = month.replace(day=1)
    previous = shift_month(month, -1)
    return BillingDates(
        billing_month=month,
        period_start=_day_in_month(previous, reading_day + 1),
        period_end=_day_in_month(month, reading_day),
        statement_date=_day_in_month(month, statement_day),
        due_date=_day_in_month(shift_month(month, 1), due_day),
    )


def month_label(month: date) -> str:
    """Format a billing month as "YYYY-MM"."""
    return f"{month.year:04d}-{month.month:02d}"
