"""In-memory content store for threads, replies and reactions.

Every operation runs on the event loop thread, so the store needs no locks:
a purge and a mutation of the same thread can never interleave.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from lurk.core.errors import NotFoundError, ValidationError
from lurk.core.expiry import Clock, epoch_millis, expires_at, is_expired, utcnow
from lurk.models import Reply, Thread
from lurk.services.events import (
    EventBus,
    ReactionUpdated,
    ReplyAdded,
    ThreadCreated,
    ThreadsPurged,
)

logger = logging.getLogger(__name__)

MOST_VIEWED_MIN = 1
MOST_VIEWED_MAX = 10

FileRemover = Callable[[str], None]


class ContentStore:
    """Owns every live thread and enforces the per-entity invariants.

    Threads are indexed by id. Identifiers are derived from the creation
    time in milliseconds and bumped when two entities land in the same
    millisecond, so they are unique and strictly increasing.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int,
        reactions: Iterable[str],
        events: EventBus | None = None,
        clock: Clock = utcnow,
        remove_file: FileRemover | None = None,
        title_max_length: int = 200,
        body_max_length: int = 5000,
        reply_max_length: int = 2000,
    ) -> None:
        """Initialize an empty store.

        Args:
            ttl_seconds: Lifetime of every thread.
            reactions: Allowed reaction symbols, in display order.
            events: Bus receiving store notifications; a private one is used if omitted.
            clock: Source of the current time.
            remove_file: Called with a thread's image reference when it is purged.
            title_max_length: Maximum accepted title length.
            body_max_length: Maximum accepted body length.
            reply_max_length: Maximum accepted reply length.
        """
        self._threads: dict[int, Thread] = {}
        self._ttl_seconds = ttl_seconds
        self._reactions = tuple(dict.fromkeys(reactions))
        self._clock = clock
        self._remove_file = remove_file
        self._last_id = 0
        self.events = events or EventBus()
        self.title_max_length = title_max_length
        self.body_max_length = body_max_length
        self.reply_max_length = reply_max_length

    @property
    def reactions(self) -> tuple[str, ...]:
        """Return the configured reaction symbols."""
        return self._reactions

    def __len__(self) -> int:
        return len(self._threads)

    def now(self) -> datetime:
        """Return the current time according to the store clock."""
        return self._clock()

    def _next_id(self, now: datetime) -> int:
        self._last_id = max(epoch_millis(now), self._last_id + 1)
        return self._last_id

    def _alive(self, thread_id: int) -> Thread:
        thread = self._threads.get(thread_id)
        if thread is None or not thread.is_alive(self._clock()):
            raise NotFoundError(f"Thread {thread_id} not found")
        return thread

    def create_thread(
        self,
        title: str,
        body: str | None = None,
        image: str | None = None,
        sensitive: bool = False,
    ) -> Thread:
        """Create a thread and announce it.

        Args:
            title: Required title; surrounding whitespace is stripped.
            body: Optional body text.
            image: Optional reference to an already stored upload.
            sensitive: Whether clients should blur the image.

        Returns:
            The created thread.

        Raises:
            ValidationError: If the title is empty or a field is too long.
        """
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("Title is required")
        if len(clean_title) > self.title_max_length:
            raise ValidationError(
                f"Title must be at most {self.title_max_length} characters"
            )
        clean_body = (body or "").strip() or None
        if clean_body is not None and len(clean_body) > self.body_max_length:
            raise ValidationError(f"Body must be at most {self.body_max_length} characters")

        now = self._clock()
        thread = Thread(
            id=self._next_id(now),
            title=clean_title,
            body=clean_body,
            image=image,
            sensitive=bool(sensitive),
            created_at=now,
            expires_at=expires_at(now, self._ttl_seconds),
            reactions={symbol: 0 for symbol in self._reactions},
        )
        self._threads[thread.id] = thread
        logger.info("Thread %d created (image=%s)", thread.id, bool(image))
        self.events.publish(ThreadCreated(thread=thread))
        return thread

    def list_threads(self) -> list[Thread]:
        """Purge expired threads, then return the rest newest first."""
        self.purge_expired()
        return sorted(self._threads.values(), key=lambda t: t.id, reverse=True)

    def get_thread(self, thread_id: int) -> Thread:
        """Return a live thread.

        Raises:
            NotFoundError: If the thread is unknown or expired.
        """
        return self._alive(thread_id)

    def add_reply(self, thread_id: int, text: str) -> Reply:
        """Append a reply to a live thread and announce it.

        Raises:
            NotFoundError: If the thread is unknown or expired.
            ValidationError: If the text is blank or too long.
        """
        thread = self._alive(thread_id)
        clean = (text or "").strip()
        if not clean:
            raise ValidationError("Reply text is required")
        if len(clean) > self.reply_max_length:
            raise ValidationError(
                f"Reply must be at most {self.reply_max_length} characters"
            )

        now = self._clock()
        reply = Reply(id=self._next_id(now), text=clean, created_at=now)
        thread.replies.append(reply)
        self.events.publish(ReplyAdded(thread_id=thread.id, reply=reply))
        return reply

    def add_reaction(self, thread_id: int, emoji: str) -> dict[str, int]:
        """Increment one reaction counter and announce the full map.

        Returns:
            A copy of the thread's reaction counts after the increment.

        Raises:
            NotFoundError: If the thread is unknown or expired.
            ValidationError: If ``emoji`` is not a configured reaction.
        """
        thread = self._alive(thread_id)
        if emoji not in self._reactions:
            raise ValidationError("Unsupported reaction")

        thread.reactions[emoji] = thread.reactions.get(emoji, 0) + 1
        snapshot = dict(thread.reactions)
        self.events.publish(ReactionUpdated(thread_id=thread.id, reactions=snapshot))
        return snapshot

    def record_view(self, thread_id: int) -> int:
        """Increment and return the view counter of a live thread."""
        thread = self._alive(thread_id)
        thread.views += 1
        return thread.views

    def most_viewed(self, limit: int = 5) -> list[Thread]:
        """Return live threads ordered by views, most recent first on ties.

        Args:
            limit: Requested size, clamped to the 1-10 range.
        """
        limit = max(MOST_VIEWED_MIN, min(MOST_VIEWED_MAX, int(limit)))
        now = self._clock()
        alive = [t for t in self._threads.values() if t.is_alive(now)]
        alive.sort(key=lambda t: (t.views, t.id), reverse=True)
        return alive[:limit]

    def purge_expired(self, now: datetime | None = None) -> list[int]:
        """Remove every thread whose expiry has been reached.

        Image deletion is delegated to the file remover and is best-effort:
        a failing remover is logged and does not stop the purge.

        Args:
            now: Reference time; defaults to the store clock.

        Returns:
            Ids of the removed threads, oldest first.
        """
        now = now or self._clock()
        expired = sorted(
            tid for tid, t in self._threads.items() if is_expired(t.expires_at, now)
        )
        if not expired:
            return []

        for thread_id in expired:
            thread = self._threads.pop(thread_id)
            if thread.image and self._remove_file is not None:
                try:
                    self._remove_file(thread.image)
                except Exception:
                    logger.exception("Could not schedule removal of %s", thread.image)

        logger.info("Purged %d expired thread(s)", len(expired))
        self.events.publish(ThreadsPurged(ids=tuple(expired)))
        return expired

    def image_refs(self) -> set[str]:
        """Return the image references held by stored threads."""
        return {t.image for t in self._threads.values() if t.image}
