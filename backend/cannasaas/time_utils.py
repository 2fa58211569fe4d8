from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
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
    if value is None or not value.strip():
        return None
    return date.fromisoformat(value.strip())


def to_utc_z(dt: Optional[datetime], keep_microseconds: bool = False) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC. Microseconds are dropped unless
    keep_microseconds is set.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    if keep_microseconds:
        return dt_utc.isoformat(timespec="microseconds").replace("+00:00", "Z")
    return dt_utc.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def local_date(tz_name: str | None, now: datetime | None = None) -> date:
    """Calendar date at a location for a UTC-naive instant."""
    now = now or utcnow()
    tz = ZoneInfo(tz_name or "UTC")
    return now.replace(tzinfo=timezone.utc).astimezone(tz).date()


def local_day_bounds(tz_name: str | None, day: date) -> tuple[datetime, datetime]:
    """
    UTC-naive [start, end) window covering one local calendar day.

    DST days are 23 or 25 hours long; both ends are computed from local
    midnights rather than by adding 24h.
    """
    tz = ZoneInfo(tz_name or "UTC")
    start_local = datetime.combine(day, time.min, tzinfo=tz)
    end_local = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc).replace(tzinfo=None),
        end_local.astimezone(timezone.utc).replace(tzinfo=None),
    )


def local_midnight(tz_name: str | None, now: datetime | None = None) -> datetime:
    """UTC-naive instant of the most recent local midnight."""
    start, _ = local_day_bounds(tz_name, local_date(tz_name, now))
    return start


def calculate_age(date_of_birth: date, today: date) -> int:
    """Whole years, not incremented until the birthday has passed this year."""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age
