"""Real-time fan-out to connected WebSocket clients.

:class:`ConnectionHub` keeps one bounded outbound queue per connection.
Sending only enqueues, so store mutations never wait on slow sockets; each
connection's writer drains its own queue in order. Delivery is best-effort
and at-most-once: a full queue drops the message and the client reconciles
through its periodic ``GET /threads``.

:class:`Fanout` turns store events into board-wide broadcasts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from lurk.core.errors import TransportFailure
from lurk.core.expiry import utcnow
from lurk.schemas import ReplyResponse, ThreadResponse, dump
from lurk.services.events import (
    EventBus,
    ReactionUpdated,
    ReplyAdded,
    StoreEvent,
    ThreadCreated,
    ThreadsPurged,
)
from lurk.services.rate_limit import ChatTokenBucket

logger = logging.getLogger(__name__)

Envelope = dict[str, Any]
Sender = Callable[[Envelope], Awaitable[None]]


def envelope(event: str, data: Any) -> Envelope:
    """Build the wire frame shared by both directions of the channel."""
    return {"event": event, "data": data}


@dataclass
class Connection:
    """State the server keeps for one real-time client."""

    id: str
    host: str
    name: str
    outbox: asyncio.Queue[Envelope]
    chat_bucket: ChatTokenBucket | None = None
    connected_at: datetime = field(default_factory=utcnow)


class ConnectionHub:
    """Registry of live connections with enqueue-only delivery."""

    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._connections: dict[str, Connection] = {}

    def open(
        self,
        connection_id: str,
        *,
        host: str,
        name: str,
        chat_bucket: ChatTokenBucket | None = None,
    ) -> Connection:
        """Register a connection and return its state."""
        connection = Connection(
            id=connection_id,
            host=host,
            name=name,
            outbox=asyncio.Queue(maxsize=self.queue_size),
            chat_bucket=chat_bucket,
        )
        self._connections[connection_id] = connection
        logger.info(
            "Connection %s opened as %s (%d online)",
            connection_id[:8], name, len(self._connections),
        )
        return connection

    def close(self, connection_id: str) -> Connection | None:
        """Forget a connection; returns its state if it was registered."""
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            logger.info(
                "Connection %s closed (%d online)",
                connection_id[:8], len(self._connections),
            )
        return connection

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def ids(self) -> list[str]:
        return list(self._connections)

    def _deliver(self, connection: Connection, frame: Envelope) -> None:
        try:
            connection.outbox.put_nowait(frame)
        except asyncio.QueueFull as exc:
            raise TransportFailure(f"Outbound queue full for {connection.id}") from exc

    def send(self, connection_id: str, event: str, data: Any) -> bool:
        """Queue one message for a single connection.

        Returns:
            False if the connection is unknown or its queue is full.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        try:
            self._deliver(connection, envelope(event, data))
        except TransportFailure as exc:
            logger.debug("Dropped %s: %s", event, exc)
            return False
        return True

    def broadcast(
        self,
        event: str,
        data: Any,
        exclude: Iterable[str] = (),
        only: Iterable[str] | None = None,
    ) -> int:
        """Queue one message for many connections.

        Args:
            event: Event name.
            data: JSON-ready payload, shared by all recipients.
            exclude: Connection ids to skip.
            only: Restrict delivery to these ids; all connections if omitted.

        Returns:
            Number of connections the message was queued for.
        """
        skipped = set(exclude)
        targets = self._connections.keys() if only is None else only
        frame = envelope(event, data)
        delivered = 0
        for connection_id in list(targets):
            if connection_id in skipped:
                continue
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            try:
                self._deliver(connection, frame)
            except TransportFailure as exc:
                logger.debug("Dropped %s: %s", event, exc)
                continue
            delivered += 1
        return delivered

    async def pump(self, connection: Connection, sender: Sender) -> None:
        """Forward queued messages to ``sender`` until it fails or is cancelled."""
        while True:
            frame = await connection.outbox.get()
            try:
                await sender(frame)
            except Exception as exc:
                logger.debug("Writer for %s stopped: %s", connection.id[:8], exc)
                return


class Fanout:
    """Broadcasts every store mutation to all connected clients."""

    def __init__(self, hub: ConnectionHub, events: EventBus) -> None:
        self.hub = hub
        self._unsubscribe = events.subscribe(self.handle)

    def detach(self) -> None:
        """Stop listening to the store."""
        self._unsubscribe()

    def handle(self, event: StoreEvent) -> None:
        """Translate a store event into a broadcast."""
        if isinstance(event, ThreadCreated):
            payload: Any = dump(ThreadResponse.model_validate(event.thread))
        elif isinstance(event, ReplyAdded):
            payload = {
                "threadId": event.thread_id,
                "reply": dump(ReplyResponse.model_validate(event.reply)),
            }
        elif isinstance(event, ReactionUpdated):
            payload = {"threadId": event.thread_id, "reactions": dict(event.reactions)}
        elif isinstance(event, ThreadsPurged):
            payload = {"ids": list(event.ids)}
        else:
            logger.debug("Ignoring unknown store event %r", event)
            return
        self.hub.broadcast(event.name, payload)
