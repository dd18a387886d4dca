"""Typed notifications produced by the content store.

The store publishes these on an :class:`EventBus`; the real-time fan-out
subscribes and turns them into broadcasts. Handlers run synchronously in
publish order, so subscribers observe mutations in the order they happened.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from lurk.models import Reply, Thread

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreEvent:
    """Base class for store notifications."""

    name: ClassVar[str] = ""


@dataclass(frozen=True)
class ThreadCreated(StoreEvent):
    name: ClassVar[str] = "thread-created"

    thread: Thread


@dataclass(frozen=True)
class ReplyAdded(StoreEvent):
    name: ClassVar[str] = "reply-added"

    thread_id: int
    reply: Reply


@dataclass(frozen=True)
class ReactionUpdated(StoreEvent):
    name: ClassVar[str] = "reaction-updated"

    thread_id: int
    reactions: dict[str, int]


@dataclass(frozen=True)
class ThreadsPurged(StoreEvent):
    name: ClassVar[str] = "threads-purged"

    ids: tuple[int, ...]


EventHandler = Callable[[StoreEvent], None]


class EventBus:
    """Minimal synchronous observer registry."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` and return a callable that unregisters it."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(self, event: StoreEvent) -> None:
        """Deliver ``event`` to every handler.

        A failing handler is logged and skipped; it never aborts the mutation
        that produced the event or starves the remaining handlers.
        """
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", event.name)
