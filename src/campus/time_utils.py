from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .config import HEATMAP_TIMEZONE


def resolve_timezone(name: Optional[str] = None) -> tzinfo:
    """
    Returns the tzinfo for a zone name (defaults to HEATMAP_TIMEZONE).
    """
    name = name or HEATMAP_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def parse_date_filter(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD date filter.

    Raises ValueError for anything that isn't a calendar date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def to_zone(ts: datetime, tz: tzinfo) -> datetime:
    """
    Converts a timestamp into tz. Naive timestamps are treated as UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz)


def day_window(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Returns the [start, end) instants of a calendar day in tz.
    """
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def falls_on_day(ts: Optional[datetime], day: date, tz: tzinfo) -> bool:
    """
    True when ts lies inside the calendar day `day` as observed in tz.
    """
    if ts is None:
        return False
    start, end = day_window(day, tz)
    return start <= to_zone(ts, tz) < end
