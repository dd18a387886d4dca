"""Abuse throttling for mutating operations and chat messages.

Two limiters live here:

- :class:`RateLimiter` keys buckets by ``(action, identity)`` where identity is
  the caller's network address. Each action has its own window, cap and
  block duration.
- :class:`ChatTokenBucket` is a continuously refilling bucket owned by a
  single real-time connection.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from lurk.core.errors import RateLimitError
from lurk.core.expiry import Clock, utcnow
from lurk.core.settings import RateLimitRule

logger = logging.getLogger(__name__)


@dataclass
class RateBucket:
    """Mutable state for one ``(action, identity)`` pair."""

    tokens: int
    refilled_at: datetime
    blocked_until: datetime | None = None


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate-limit check."""

    allowed: bool
    retry_after: int = 0


class RateLimiter:
    """Token bucket per ``(action, identity)`` with a cool-down once exhausted.

    A bucket starts with ``cap`` tokens and is topped back up once
    ``window_seconds`` have passed since the last refill. Asking for a token
    from an empty bucket blocks the identity for ``block_seconds``; the bucket
    is refilled when the block lifts.
    """

    def __init__(self, rules: Mapping[str, RateLimitRule], clock: Clock = utcnow) -> None:
        self._rules = dict(rules)
        self._clock = clock
        self._buckets: dict[tuple[str, str], RateBucket] = {}

    @property
    def rules(self) -> dict[str, RateLimitRule]:
        """Return a copy of the configured rules."""
        return dict(self._rules)

    def hit(self, action: str, identity: str) -> RateLimitDecision:
        """Spend one token for ``identity`` on ``action`` if possible.

        Args:
            action: Rate-limited action key, e.g. ``"create-thread"``.
            identity: Caller identity, usually the client address.

        Returns:
            Whether the request may proceed and, if not, how many seconds to wait.
        """
        rule = self._rules.get(action)
        if rule is None:
            return RateLimitDecision(allowed=True)

        now = self._clock()
        key = (action, identity)
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = RateBucket(tokens=rule.cap, refilled_at=now)
            self._buckets[key] = bucket

        if bucket.blocked_until is not None:
            if now < bucket.blocked_until:
                return RateLimitDecision(
                    allowed=False,
                    retry_after=_ceil_seconds(bucket.blocked_until, now),
                )
            bucket.blocked_until = None
            bucket.tokens = rule.cap
            bucket.refilled_at = now
        elif (now - bucket.refilled_at).total_seconds() >= rule.window_seconds:
            bucket.tokens = rule.cap
            bucket.refilled_at = now

        if bucket.tokens > 0:
            bucket.tokens -= 1
            return RateLimitDecision(allowed=True)

        if rule.block_seconds > 0:
            bucket.blocked_until = _add_seconds(now, rule.block_seconds)
            retry_after = _ceil_seconds(bucket.blocked_until, now)
        else:
            window_end = _add_seconds(bucket.refilled_at, rule.window_seconds)
            retry_after = _ceil_seconds(window_end, now)
        logger.warning(
            "Rate limit exceeded for %s on %s (cap %d per %ss)",
            identity, action, rule.cap, rule.window_seconds,
        )
        return RateLimitDecision(allowed=False, retry_after=retry_after)

    def allow(self, action: str, identity: str) -> bool:
        """Return True and spend a token if ``identity`` may perform ``action``."""
        return self.hit(action, identity).allowed

    def enforce(self, action: str, identity: str) -> None:
        """Spend a token or raise.

        Raises:
            RateLimitError: If ``identity`` is over its limit for ``action``.
        """
        decision = self.hit(action, identity)
        if not decision.allowed:
            raise RateLimitError(
                f"Too many {action} requests; retry in {decision.retry_after}s",
                retry_after=decision.retry_after,
            )

    def evict_idle(self, now: datetime | None = None) -> int:
        """Drop buckets that would be recreated identically on next use.

        Returns:
            Number of evicted buckets.
        """
        now = now or self._clock()
        stale = []
        for (action, identity), bucket in self._buckets.items():
            rule = self._rules.get(action)
            if rule is None:
                stale.append((action, identity))
                continue
            if bucket.blocked_until is not None and now < bucket.blocked_until:
                continue
            if (now - bucket.refilled_at).total_seconds() >= rule.window_seconds:
                stale.append((action, identity))
        for key in stale:
            del self._buckets[key]
        return len(stale)

    def reset(self) -> None:
        """Forget every bucket."""
        self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


class ChatTokenBucket:
    """Continuously refilling bucket gating chat messages of one connection."""

    def __init__(
        self,
        capacity: int = 5,
        refill_per_second: float = 1.0,
        clock: Clock = utcnow,
    ) -> None:
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self._clock = clock
        self._tokens = float(capacity)
        self._updated_at = clock()

    @property
    def tokens(self) -> float:
        """Return the tokens currently available, refilling first."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, (now - self._updated_at).total_seconds())
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
        self._updated_at = now

    def consume(self) -> bool:
        """Spend one token if available."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False


def _add_seconds(moment: datetime, seconds: float) -> datetime:
    return moment + timedelta(seconds=seconds)


def _ceil_seconds(until: datetime, now: datetime) -> int:
    return max(1, math.ceil((until - now).total_seconds()))
