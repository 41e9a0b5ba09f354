"""Calendar helpers: Monday-based weeks, local ISO dates, weekday column names."""

from datetime import date, datetime, timedelta
from typing import Union

# Order matters: index == date.weekday()
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DateLike = Union[date, datetime]


def _as_date(d: DateLike) -> date:
    # datetime is a subclass of date, keep only the calendar day
    return d.date() if isinstance(d, datetime) else d


def iso_local(d: DateLike) -> str:
    """YYYY-MM-DD of the local calendar day, no timezone shifting."""
    return _as_date(d).isoformat()


def monday_of(d: DateLike) -> date:
    """Monday of the week containing ``d``. Sunday belongs to the week before."""
    day = _as_date(d)
    return day - timedelta(days=day.weekday())


def weekday_name(d: DateLike) -> str:
    return WEEKDAYS[_as_date(d).weekday()]


def week_days(d: DateLike) -> list[date]:
    monday = monday_of(d)
    return [monday + timedelta(days=i) for i in range(7)]


def previous_week(d: DateLike) -> date:
    return monday_of(d) - timedelta(days=7)


def is_monday(d: DateLike) -> bool:
    return _as_date(d).weekday() == 0


def week_range(first_week: DateLike, weeks: int) -> tuple[date, date]:
    """First and last Monday of a run of ``weeks`` consecutive weeks."""
    first = monday_of(first_week)
    return first, first + timedelta(days=7 * (weeks - 1))
