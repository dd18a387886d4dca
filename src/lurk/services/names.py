"""Anonymous display names for chat and video sessions."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from lurk.core.expiry import Clock, epoch_millis, utcnow

logger = logging.getLogger(__name__)

MAX_ASSIGN_ATTEMPTS = 20
NAME_DIGITS = 4
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class NameRecord:
    """Reservation state for one name."""

    in_use: bool
    reserved_until: datetime


class NameRegistry:
    """Hands out ``<prefix>NNNN`` names and keeps released ones reserved.

    A released name stays reserved until its window lapses, so a reconnecting
    visitor is not immediately confused with somebody else.
    """

    def __init__(
        self,
        *,
        prefix: str = "ghost",
        reservation_seconds: int = 12 * 3600,
        clock: Clock = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self.prefix = prefix
        self.reservation = timedelta(seconds=reservation_seconds)
        self._clock = clock
        self._rng = rng or random.Random()
        self._records: dict[str, NameRecord] = {}

    def _available(self, name: str, now: datetime) -> bool:
        record = self._records.get(name)
        return record is None or (not record.in_use and record.reserved_until <= now)

    def _candidate(self) -> str:
        return f"{self.prefix}{self._rng.randrange(10 ** NAME_DIGITS):0{NAME_DIGITS}d}"

    def _fallback(self, now: datetime) -> str:
        millis = epoch_millis(now)
        while True:
            digits = []
            value = millis
            while value:
                value, rem = divmod(value, 36)
                digits.append(_BASE36[rem])
            name = f"{self.prefix}{''.join(reversed(digits))[-6:]}"
            if self._available(name, now):
                return name
            millis += 1

    def assign(self) -> str:
        """Reserve and return a free name.

        Random candidates are tried a bounded number of times before falling
        back to a name derived from the current time.
        """
        now = self._clock()
        for _ in range(MAX_ASSIGN_ATTEMPTS):
            name = self._candidate()
            if self._available(name, now):
                break
        else:
            name = self._fallback(now)
            logger.debug("Name space crowded, using time-derived name %s", name)

        self._records[name] = NameRecord(in_use=True, reserved_until=now + self.reservation)
        return name

    def release(self, name: str) -> None:
        """Mark ``name`` as no longer used while keeping its reservation."""
        record = self._records.get(name)
        if record is not None:
            record.in_use = False

    def touch(self, name: str) -> None:
        """Extend the reservation of ``name`` after activity."""
        record = self._records.get(name)
        if record is not None:
            record.reserved_until = self._clock() + self.reservation

    def is_reserved(self, name: str) -> bool:
        """Return True while ``name`` cannot be handed to somebody else."""
        return not self._available(name, self._clock())

    def sweep(self, now: datetime | None = None) -> int:
        """Forget released names whose reservation has lapsed.

        Returns:
            Number of removed records.
        """
        now = now or self._clock()
        stale = [
            name
            for name, record in self._records.items()
            if not record.in_use and record.reserved_until <= now
        ]
        for name in stale:
            del self._records[name]
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)
