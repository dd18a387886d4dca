"""Clock and expiry policy helpers.

Threads use a rolling TTL: each one lives a fixed duration from its own
creation time, independent of wall-clock hour boundaries.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

Clock = Callable[[], datetime]

MILLISECONDS_PER_SECOND = 1000


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def expires_at(created_at: datetime, ttl_seconds: int) -> datetime:
    """Return the moment a thread created at ``created_at`` stops being visible.

    Args:
        created_at: Creation timestamp of the thread.
        ttl_seconds: Lifetime in seconds.

    Returns:
        ``created_at + ttl_seconds``.
    """
    return created_at + timedelta(seconds=ttl_seconds)


def is_expired(expiry: datetime, now: datetime) -> bool:
    """Return True once ``now`` has reached ``expiry``."""
    return now >= expiry


def epoch_millis(moment: datetime) -> int:
    """Return ``moment`` as integer milliseconds since the Unix epoch."""
    return int(moment.timestamp() * MILLISECONDS_PER_SECOND)
