"""Background purge of expired threads.

This module provides the PurgeScheduler class that periodically removes
expired threads from the content store and runs the housekeeping sweeps that
keep the other in-memory structures bounded.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from lurk.services.store import ContentStore
from lurk.services.uploads import UploadStorage

logger = logging.getLogger(__name__)

Sweeper = Callable[[datetime | None], object]


@dataclass
class PurgeStats:
    """Counters describing the scheduler's activity."""

    ticks: int = 0
    purged: int = 0
    orphans_removed: int = 0
    last_run: datetime | None = None


class PurgeScheduler:
    """Periodically purges expired threads and runs housekeeping.

    Each tick:

    - removes expired threads (the store announces them and deletes images),
    - deletes upload files no thread references any more,
    - runs the registered sweepers (name registry, rate-limit buckets).

    A tick that finds nothing expired changes nothing and announces nothing.
    """

    def __init__(
        self,
        store: ContentStore,
        *,
        interval_seconds: float = 60.0,
        uploads: UploadStorage | None = None,
        orphan_age_seconds: float | None = None,
        sweepers: list[Sweeper] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Content store to purge.
            interval_seconds: Delay between ticks.
            uploads: Upload storage scanned for orphaned files.
            orphan_age_seconds: Minimum age of an unreferenced file before removal.
            sweepers: Extra callables invoked with the tick time.
        """
        self.store = store
        self.interval_seconds = interval_seconds
        self.uploads = uploads
        self.orphan_age_seconds = orphan_age_seconds
        self.sweepers = list(sweepers or [])
        self.stats = PurgeStats()
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background purge loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background purge loop, letting a running tick finish."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.1, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("PurgeScheduler tick failed")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def run_once(self, now: datetime | None = None) -> list[int]:
        """Run a single purge tick.

        Args:
            now: Reference time; defaults to the store clock.

        Returns:
            Ids of the threads removed by this tick.
        """
        removed = self.store.purge_expired(now)
        self.stats.ticks += 1
        self.stats.last_run = now or self.store.now()
        self.stats.purged += len(removed)

        if self.uploads is not None and self.orphan_age_seconds is not None:
            orphans = await asyncio.to_thread(
                self.uploads.sweep_orphans,
                self.store.image_refs(),
                self.orphan_age_seconds,
            )
            self.stats.orphans_removed += orphans

        for sweeper in self.sweepers:
            try:
                sweeper(now)
            except Exception:
                logger.exception("Housekeeping sweeper %r failed", sweeper)

        if removed:
            logger.info("Purge tick removed %d thread(s): %s", len(removed), removed)
        return removed
