"""Time helpers shared by the scheduling and booking domains"""

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored in every timestamp column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def weekday_name(day: date) -> str:
    """Weekday name for a calendar date, independent of the process locale"""
    return WEEKDAY_NAMES[day.weekday()]


def interval_contains(outer_start: time, outer_end: time, start: time, end: time) -> bool:
    """True when [start, end) lies fully inside [outer_start, outer_end)"""
    return outer_start <= start and end <= outer_end
