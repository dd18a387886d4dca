"""Abuse report record handed to the report sink."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

REPORT_REASONS = frozenset({"abuse", "harassment", "spam", "nsfw", "illegal", "other"})
DEFAULT_REPORT_REASON = "other"


@dataclass(frozen=True)
class Report:
    """Immutable abuse report.

    ``thread_id`` and ``reply_id`` are stored as given; reports may point at
    content that has already been purged.
    """

    id: str
    created_at: datetime
    reason: str
    details: str | None = None
    thread_id: str | None = None
    reply_id: str | None = None
    reporter: str | None = None
