"""Time-zone and calendar-day helpers shared by the validator and analytics.

A zone of None stands for the system zone. It is resolved per moment, so
dates on either side of a daylight-saving change get their own offset.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Tuple, Union

DateLike = Union[date, datetime]


def ensure_aware(moment: datetime) -> datetime:
    """Naive datetimes are taken to be system-local time."""
    if moment.tzinfo is None:
        return moment.astimezone()
    return moment


def to_zone(moment: datetime, tz: Optional[tzinfo]) -> datetime:
    # astimezone(None) converts to the system zone at that instant
    return ensure_aware(moment).astimezone(tz)


def localize(wall_clock: datetime, tz: Optional[tzinfo]) -> datetime:
    """Attach `tz` to a naive wall-clock time."""
    if tz is None:
        return wall_clock.astimezone()
    return wall_clock.replace(tzinfo=tz)


def local_day(value: DateLike, tz: Optional[tzinfo]) -> date:
    """Calendar day of `value` as seen in `tz`. Plain dates pass through."""
    if isinstance(value, datetime):
        return to_zone(value, tz).date()
    return value


def day_bounds(value: DateLike, tz: Optional[tzinfo]) -> Tuple[datetime, datetime]:
    """[start, end) of the calendar day containing `value`, in `tz`.

    The day is not always 24 hours long: DST days in the system zone are 23 or 25.
    """
    day = local_day(value, tz)
    start = localize(datetime.combine(day, time.min), tz)
    end = localize(datetime.combine(day + timedelta(days=1), time.min), tz)
    return start, end


def minutes_of_day(value: Union[datetime, time]) -> int:
    return value.hour * 60 + value.minute


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5
