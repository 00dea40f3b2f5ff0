from datetime import datetime, date, time, timedelta
from typing import List, Optional
from pytz import timezone
from dateutil.rrule import rrule, DAILY, MO, TU, WE, TH, FR

from .config import BARANGAY_TIMEZONE

WEEKDAYS = (MO, TU, WE, TH, FR)


def local_now() -> datetime:
    """
    Current wall-clock time at the barangay hall.

    Returns:
        datetime: A naive datetime in the configured local timezone. All lifecycle
        timestamps are stored this way so that "end of day" means the local day.
    """
    return datetime.now(timezone(BARANGAY_TIMEZONE)).replace(tzinfo=None)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def next_weekday(day: date) -> date:
    """
    Advance a date one day at a time until it is not a Saturday or Sunday.

    Args:
        day (date): The starting date.

    Returns:
        date: `day` itself if it is a weekday, otherwise the following Monday.
    """
    while is_weekend(day):
        day = day + timedelta(days=1)
    return day


def weekdays_between(start: date, end: date) -> List[date]:
    """
    List every Monday-Friday date from start to end inclusive.

    Args:
        start (date): First day of the range.
        end (date): Last day of the range.

    Returns:
        list[date]: Weekdays in ascending order; empty when end precedes start.
    """
    if end < start:
        return []
    rule = rrule(
        DAILY,
        dtstart=datetime.combine(start, time.min),
        until=datetime.combine(end, time.min),
        byweekday=WEEKDAYS,
    )
    return [occurrence.date() for occurrence in rule]


def end_of_day(day: date) -> datetime:
    """Last representable instant (23:59:59.999) of a local day."""
    return datetime.combine(day, time(23, 59, 59, 999000))


def parse_slot_time(value: Optional[str]) -> time:
    """
    Parse an "HH:MM" slot time.

    Args:
        value (str, optional): Time string; missing values mean midnight.

    Returns:
        time: The parsed time of day.

    Raises:
        ValueError: If the value is not a valid "HH:MM" string.
    """
    if not value:
        return time(0, 0)
    hours, minutes = value.strip().split(":", 1)
    return time(int(hours), int(minutes))


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from `earlier` to `later`, never negative."""
    return max((later - earlier).days, 0)
