from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    if dt.tzinfo is None:
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD"; None / "" -> None."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s[:10])


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_business_time(dt: datetime, tz_name: str) -> datetime:
    """UTC-naive -> naive wall-clock time in the business zone."""
    return dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)


def business_today(tz_name: str) -> date:
    return to_business_time(utcnow(), tz_name).date()


def day_window(start: date, end: date, tz_name: str) -> tuple[datetime, datetime]:
    """
    Inclusive UTC-naive bounds covering start 00:00:00 through end 23:59:59,
    both read as wall-clock times in the business zone.
    """
    zone = ZoneInfo(tz_name)
    lo = datetime.combine(start, time(0, 0, 0), tzinfo=zone)
    hi = datetime.combine(end, time(23, 59, 59), tzinfo=zone)
    return (
        lo.astimezone(timezone.utc).replace(tzinfo=None),
        hi.astimezone(timezone.utc).replace(tzinfo=None),
    )
