"""
Business Day Calendar

Date parsing and Monday-Friday counting for sprint planning.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

DateLike = Union[str, date, None]


def parse_date(value: DateLike) -> Optional[date]:
    """
    Parse an ISO date string (or pass through a date).

    Returns None for empty or malformed input instead of raising, so a bad
    holiday or absence entry simply drops out of the counts.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def is_business_day(day: date) -> bool:
    return day.weekday() < 5  # Monday = 0, Friday = 4


def business_days_between(start: date, end: date) -> int:
    """Number of weekdays in the inclusive interval [start, end]."""
    if end < start:
        return 0

    total_days = (end - start).days + 1
    weeks, remainder = divmod(total_days, 7)
    count = weeks * 5

    current = start + timedelta(days=weeks * 7)
    for _ in range(remainder):
        if is_business_day(current):
            count += 1
        current += timedelta(days=1)
    return count


def within(day: date, start: date, end: date) -> bool:
    return start <= day <= end


def count_dates_within(values: Iterable[DateLike], start: date, end: date) -> int:
    """Count parseable dates falling inside [start, end]; invalid entries are skipped."""
    count = 0
    for value in values:
        parsed = parse_date(value)
        if parsed is not None and within(parsed, start, end):
            count += 1
    return count
