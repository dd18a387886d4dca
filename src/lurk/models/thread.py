"""In-memory entities for threads and replies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from lurk.core.expiry import is_expired


@dataclass
class Reply:
    """A reply owned by exactly one thread; it disappears with its parent."""

    id: int
    text: str
    created_at: datetime


@dataclass
class Thread:
    """Top-level post on the board.

    ``reactions`` always carries every configured symbol, so clients can render
    zero counts without knowing the configuration.
    """

    id: int
    title: str
    created_at: datetime
    expires_at: datetime
    body: str | None = None
    image: str | None = None
    sensitive: bool = False
    views: int = 0
    reactions: dict[str, int] = field(default_factory=dict)
    replies: list[Reply] = field(default_factory=list)

    def is_alive(self, now: datetime) -> bool:
        """Return True while the thread is still visible to readers."""
        return not is_expired(self.expires_at, now)
