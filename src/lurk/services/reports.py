"""Append-only sink for abuse reports."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from pathlib import Path

from lurk.core.expiry import Clock, utcnow
from lurk.models import DEFAULT_REPORT_REASON, REPORT_REASONS, Report

logger = logging.getLogger(__name__)


def normalize_reason(reason: object) -> str:
    """Return ``reason`` if it is a known category, ``"other"`` otherwise."""
    if isinstance(reason, str):
        value = reason.strip().lower()
        if value in REPORT_REASONS:
            return value
    return DEFAULT_REPORT_REASON


class ReportSink:
    """Writes reports as JSON lines to a file.

    Records are never read back or mutated by the application.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        details_max_length: int = 2000,
        clock: Clock = utcnow,
    ) -> None:
        self.path = Path(path)
        self.details_max_length = details_max_length
        self._clock = clock
        self._pending: set[asyncio.Task[None]] = set()

    def build(
        self,
        reason: object,
        details: str | None = None,
        thread_id: str | None = None,
        reply_id: str | None = None,
        reporter: str | None = None,
    ) -> Report:
        """Create a normalized report record."""
        clean_details = (details or "").strip()[: self.details_max_length] or None
        return Report(
            id=secrets.token_hex(8),
            created_at=self._clock(),
            reason=normalize_reason(reason),
            details=clean_details,
            thread_id=(thread_id or "").strip() or None,
            reply_id=(reply_id or "").strip() or None,
            reporter=reporter,
        )

    def submit(self, report: Report) -> None:
        """Queue ``report`` for writing without waiting for the disk."""
        task = asyncio.get_running_loop().create_task(self.append(report))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def append(self, report: Report) -> bool:
        """Append ``report`` to the log.

        Returns:
            True if the record was written; failures are logged.
        """
        line = json.dumps(
            {
                "id": report.id,
                "createdAt": report.created_at.isoformat(),
                "reason": report.reason,
                "details": report.details,
                "threadId": report.thread_id,
                "replyId": report.reply_id,
                "reporter": report.reporter,
            },
            ensure_ascii=False,
        )
        try:
            await asyncio.to_thread(self._write_line, line)
        except OSError as exc:
            logger.error("Failed to record report %s: %s", report.id, exc)
            return False
        logger.info("Recorded %s report %s", report.reason, report.id)
        return True

    def _write_line(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    async def wait_pending(self) -> None:
        """Wait for queued writes to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
