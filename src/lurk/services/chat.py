"""Global live chat relay."""

from __future__ import annotations

import logging
import secrets
from typing import Any

from lurk.core.expiry import Clock, utcnow
from lurk.services.fanout import Connection, ConnectionHub
from lurk.services.names import NameRegistry
from lurk.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

CHAT_EVENT = "chat-message"
CHAT_NOTICE_EVENT = "chat-system"
SESSION_EVENT = "session"
CHAT_ACTION = "chat-message"
SYSTEM_USER = "system"


def extract_text(data: Any) -> str:
    """Pull the message text out of ``{"text": ...}`` or a bare string."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict) and isinstance(data.get("text"), str):
        return data["text"]
    return ""


class ChatRelay:
    """Broadcasts chat lines to every connection, tagged with the sender's name."""

    def __init__(
        self,
        hub: ConnectionHub,
        names: NameRegistry,
        limiter: RateLimiter | None = None,
        *,
        max_length: int = 500,
        clock: Clock = utcnow,
    ) -> None:
        self.hub = hub
        self.names = names
        self.limiter = limiter
        self.max_length = max_length
        self._clock = clock

    def _line(self, user: str, text: str, *, system: bool = False) -> dict[str, Any]:
        line: dict[str, Any] = {
            "id": secrets.token_hex(6),
            "user": user,
            "text": text,
            "time": self._clock().isoformat(),
        }
        if system:
            line["system"] = True
        return line

    def greet(self, connection: Connection) -> None:
        """Tell a new client its name and announce it to everyone."""
        self.hub.send(connection.id, SESSION_EVENT, {"id": connection.id, "name": connection.name})
        self.hub.broadcast(CHAT_EVENT, self._line(SYSTEM_USER, f"{connection.name} joined", system=True))

    def farewell(self, connection: Connection) -> None:
        """Announce that a client went away."""
        self.hub.broadcast(CHAT_EVENT, self._line(SYSTEM_USER, f"{connection.name} left", system=True))

    def notice(self, connection: Connection, text: str) -> None:
        """Send a system notice to one connection only."""
        self.hub.send(connection.id, CHAT_NOTICE_EVENT, {"text": text})

    def handle(self, connection: Connection, data: Any) -> bool:
        """Relay one inbound chat message verbatim.

        Blank messages are ignored; messages over the length cap are refused
        with a notice to the sender.

        Returns:
            True if the message was broadcast.
        """
        text = extract_text(data)
        if not text.strip():
            return False
        if len(text) > self.max_length:
            self.notice(
                connection,
                f"Message is too long (max {self.max_length} characters).",
            )
            return False

        if connection.chat_bucket is not None and not connection.chat_bucket.consume():
            self.notice(connection, "You are sending messages too fast.")
            return False
        if self.limiter is not None:
            decision = self.limiter.hit(CHAT_ACTION, connection.host)
            if not decision.allowed:
                self.notice(
                    connection,
                    f"Chat is cooling down, try again in {decision.retry_after}s.",
                )
                return False

        self.names.touch(connection.name)
        self.hub.broadcast(CHAT_EVENT, self._line(connection.name, text))
        return True
