"""
Time helpers shared by services and models.

Services take a ``Clock`` (a zero-argument callable returning an aware UTC
datetime) so tests can pin "now".
"""

from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from stores without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def local_date(now: datetime, tz_name: str) -> date:
    """Calendar date of ``now`` in the given IANA timezone."""
    return ensure_utc(now).astimezone(ZoneInfo(tz_name)).date()


def elapsed_seconds(since: datetime, now: datetime) -> int:
    """Whole seconds between two instants, never negative."""
    return max(0, int((ensure_utc(now) - ensure_utc(since)).total_seconds()))
