from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive values (SQLite round-trips) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime) -> str:
    """ISO 8601 with a "Z" suffix, the same shape the response models emit."""
    return as_utc(value).isoformat().replace("+00:00", "Z")


def minutes_between(start: datetime, end: datetime) -> int:
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return int(seconds // 60)


def working_hours(start: datetime, end: datetime) -> float:
    hours = (as_utc(end) - as_utc(start)).total_seconds() / 3600
    return max(0.0, round(hours, 2))


def format_hours(hours: Optional[float]) -> str:
    if not hours:
        return "N/A"
    whole, minutes = divmod(round(hours * 60), 60)
    return f"{whole}h {minutes}m"


def local_date(value: datetime, tz_name: str) -> date:
    return as_utc(value).astimezone(ZoneInfo(tz_name)).date()


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day in the given zone."""
    zone = ZoneInfo(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
