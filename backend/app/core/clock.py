"""Time helpers.

All persisted timestamps are naive UTC datetimes. Services take a ``clock``
callable so expiry logic can be driven from tests.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch(dt: datetime) -> int:
    """Seconds since the epoch for a naive UTC datetime."""
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


def isoformat(dt: datetime) -> str:
    """ISO-8601 string with an explicit UTC offset."""
    return dt.replace(tzinfo=timezone.utc).isoformat()
