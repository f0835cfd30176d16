from datetime import datetime, time
from zoneinfo import ZoneInfo


def to_local_iso(dt_utc, tz_name):
    return dt_utc.astimezone(ZoneInfo(tz_name)).isoformat()


def minutes_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 60


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def local_minute_of_day(dt: datetime, tz) -> int:
    return minute_of_day(dt.astimezone(tz).time())
