"""
Week arithmetic for workout scheduling.

Assignments are grouped by training week. A week is anchored on Monday,
so every date inside it maps to the same week start.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

DateLike = Union[date, datetime, str]


def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or ISO string into a plain date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # Accept both "2024-01-01" and full ISO timestamps
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    raise TypeError(f"Cannot interpret {value!r} as a date")


def get_week_start(value: Optional[DateLike] = None) -> date:
    """Monday of the week containing the given date (today if omitted)."""
    day = to_date(value) if value is not None else datetime.now(timezone.utc).date()
    return day - timedelta(days=day.weekday())


def get_week_end(value: Optional[DateLike] = None) -> date:
    """Sunday of the week containing the given date."""
    return get_week_start(value) + timedelta(days=6)


def is_same_week(a: DateLike, b: DateLike) -> bool:
    return get_week_start(a) == get_week_start(b)


def format_week_display(week_start: DateLike) -> str:
    """Short label for a week, e.g. "Week of Aug 12"."""
    day = to_date(week_start)
    return f"Week of {day.strftime('%b')} {day.day}"


def describe_days_since_update(
    updated: Optional[datetime],
    now: Optional[datetime] = None,
) -> str:
    """
    Human-readable freshness label for a record.

    Returns an empty string when there is no timestamp to describe.
    """
    if updated is None:
        return ""

    now = now or datetime.now(timezone.utc)
    # Clock skew can put updated slightly ahead of now
    days = max(0, (now - updated).days)

    if days == 0:
        return "Updated today"
    if days == 1:
        return "Updated yesterday"
    return f"Updated {days} days ago"
