"""
Calendar date helpers.

Every date that enters the engine passes through ``to_calendar_date`` so that
comparisons and arithmetic only ever see plain ``datetime.date`` values.
Timestamps keep the calendar date they were written with; they are never
shifted into another timezone.
"""
import re
from datetime import date, datetime, timedelta
from typing import Iterator, Union

from flowtracker.services.exceptions import InvalidDateError

DATE_FORMAT = "%Y-%m-%d"

DateLike = Union[date, datetime, str]

_ISO_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:$|[T ])")


def to_calendar_date(value: DateLike) -> date:
    """
    Normalize a date, datetime or ISO string to a calendar date.

    Args:
        value: ``date``, ``datetime`` or a string starting with ``yyyy-MM-dd``

    Returns:
        The calendar date as written in the input

    Raises:
        InvalidDateError: If the value cannot be read as a calendar date

    Example:
        >>> to_calendar_date("2024-03-10T23:30:00-05:00")
        datetime.date(2024, 3, 10)
    """
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = _ISO_DATE_PREFIX.match(value.strip())
        if match:
            try:
                return datetime.strptime(match.group(1), DATE_FORMAT).date()
            except ValueError as e:
                raise InvalidDateError(f"Invalid calendar date: {value!r}") from e
    raise InvalidDateError(f"Expected yyyy-MM-dd date, got {value!r}")


def format_date(value: date) -> str:
    """Format a calendar date as ``yyyy-MM-dd``."""
    return value.strftime(DATE_FORMAT)


def days_between(later: date, earlier: date) -> int:
    """Signed number of calendar days from ``earlier`` to ``later``."""
    return (later - earlier).days


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def date_range(start: date, end: date) -> Iterator[date]:
    """
    Iterate over every calendar day in ``[start, end]``.

    Yields nothing when ``end`` precedes ``start``.
    """
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
