# tenantbook/core.py

from datetime import datetime, date, time, timedelta, timezone


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime (the storage representation)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    # naive input is taken to be UTC already
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval test: [a) and [b) touching at an edge do not overlap."""
    return start_a < end_b and start_b < end_a


def day_bounds(day: date) -> tuple[datetime, datetime]:
    day_start = datetime.combine(day, time.min)
    return day_start, day_start + timedelta(days=1)


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))
