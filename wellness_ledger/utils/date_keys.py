"""
Calendar-day and week keys

Every ledger document is keyed by local calendar day, so these helpers are
the single place where wall-clock instants become keys:

- DateKey: 'YYYY-MM-DD' of the local calendar day
- WeekKey: DateKey of the Monday that starts the week containing a day

RULES:
- Aware datetimes are converted to the requested zone before taking the day
- Naive datetimes are taken as already local
- Malformed keys raise InvalidDateKey and are never silently coerced
"""

import logging
import re
from datetime import datetime, date, timedelta
from typing import Optional, Union
from zoneinfo import ZoneInfo

from wellness_ledger.exceptions import InvalidDateKey

logger = logging.getLogger(__name__)

WEEKDAY_ABBREVIATIONS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

Instant = Union[datetime, date]


def _local_date(instant: Instant, tz: Optional[Union[str, ZoneInfo]] = None) -> date:
    if isinstance(instant, datetime):
        if instant.tzinfo is not None and tz is not None:
            zone = ZoneInfo(tz) if isinstance(tz, str) else tz
            instant = instant.astimezone(zone)
        return instant.date()
    return instant


def date_key(instant: Instant, tz: Optional[Union[str, ZoneInfo]] = None) -> str:
    """
    Convert an instant to the DateKey of its local calendar day

    Args:
        instant: datetime (aware or naive) or date
        tz: Zone to take the calendar day in; ignored for naive values

    Returns:
        Zero-padded 'YYYY-MM-DD'
    """
    d = _local_date(instant, tz)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def parse_date_key(key: str) -> date:
    """
    Parse a DateKey back into a date

    Raises:
        InvalidDateKey: If key is not a real YYYY-MM-DD calendar day
    """
    if not isinstance(key, str) or not _DATE_KEY_RE.match(key):
        raise InvalidDateKey(key)
    try:
        return datetime.strptime(key, "%Y-%m-%d").date()
    except ValueError as e:
        raise InvalidDateKey(key, cause=e)


def week_start(d: date) -> date:
    """Monday of the week containing d (Sunday maps back 6 days)"""
    return d - timedelta(days=d.weekday())


def week_key(instant: Union[Instant, str], tz: Optional[Union[str, ZoneInfo]] = None) -> str:
    """
    WeekKey for an instant or DateKey

    Stable for every day from Monday through Sunday of the same week.
    """
    d = parse_date_key(instant) if isinstance(instant, str) else _local_date(instant, tz)
    return date_key(week_start(d))


def day_gap(key_a: str, key_b: str) -> int:
    """
    Calendar-day difference key_a - key_b (negative when key_a is earlier)

    Example:
        day_gap("2024-01-02", "2024-01-01") == 1
    """
    return (parse_date_key(key_a) - parse_date_key(key_b)).days


def weekday_abbrev(key: str) -> str:
    """Three-letter weekday name of a DateKey ('Mon'...'Sun')"""
    return WEEKDAY_ABBREVIATIONS[parse_date_key(key).weekday()]


def add_days(key: str, days: int) -> str:
    """DateKey shifted by a number of days"""
    return date_key(parse_date_key(key) + timedelta(days=days))


def now_local(tz: Union[str, ZoneInfo] = "UTC") -> datetime:
    """Current aware datetime in the given zone"""
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    return datetime.now(zone)
