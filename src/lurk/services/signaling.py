"""Video room membership and WebRTC signaling relay.

The server never touches media. It only tracks who is in which room and
forwards offer/answer/ICE payloads to the addressed peer, unmodified.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from lurk.core.expiry import Clock, epoch_millis, utcnow
from lurk.services.fanout import ConnectionHub

logger = logging.getLogger(__name__)

EXISTING_PEERS_EVENT = "video-existing-peers"
PEER_JOINED_EVENT = "video-peer-joined"
PEER_LEFT_EVENT = "video-peer-left"
ROOM_MESSAGE_EVENT = "video-room-message"

# Relayed event -> name of the payload field carried alongside ``from``.
RELAYED_EVENTS: dict[str, str] = {
    "video-offer": "description",
    "video-answer": "description",
    "video-ice-candidate": "candidate",
}


def _clean(value: Any, limit: int) -> str:
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        return ""
    return str(value).strip()[:limit]


class SignalingRelay:
    """Per-connection room state machine: unjoined or joined to one room."""

    def __init__(
        self,
        hub: ConnectionHub,
        *,
        name_max_length: int = 40,
        text_max_length: int = 500,
        clock: Clock = utcnow,
    ) -> None:
        self.hub = hub
        self.name_max_length = name_max_length
        self.text_max_length = text_max_length
        self._clock = clock
        self._rooms: dict[str, dict[str, str]] = {}
        self._membership: dict[str, str] = {}

    def room_of(self, peer_id: str) -> str | None:
        """Return the room ``peer_id`` is in, if any."""
        return self._membership.get(peer_id)

    def members(self, room_id: str) -> dict[str, str]:
        """Return a copy of ``peer id -> display name`` for a room."""
        return dict(self._rooms.get(room_id, {}))

    def rooms(self) -> list[str]:
        return list(self._rooms)

    def join(self, peer_id: str, room_id: Any, name: Any = None, default_name: str = "") -> bool:
        """Move ``peer_id`` into ``room_id``.

        Leaves any other room first, sends the joiner the list of peers
        already present and tells those peers about the newcomer.

        Returns:
            False if the room id was missing.
        """
        room = _clean(room_id, 200)
        if not room:
            logger.debug("Join without room id from %s dropped", peer_id[:8])
            return False

        display = _clean(name, self.name_max_length) or default_name or "Anon"
        current = self._membership.get(peer_id)
        if current is not None and current != room:
            self.leave(peer_id)

        members = self._rooms.setdefault(room, {})
        existing = [
            {"peerId": other, "name": other_name}
            for other, other_name in members.items()
            if other != peer_id
        ]
        members[peer_id] = display
        self._membership[peer_id] = room

        self.hub.send(peer_id, EXISTING_PEERS_EVENT, existing)
        self.hub.broadcast(
            PEER_JOINED_EVENT,
            {"peerId": peer_id, "name": display},
            only=[entry["peerId"] for entry in existing],
        )
        logger.info("Peer %s joined room %s (%d members)", peer_id[:8], room, len(members))
        return True

    def leave(self, peer_id: str) -> bool:
        """Remove ``peer_id`` from its room and notify the remaining members.

        Returns:
            False if the peer was not in a room.
        """
        room = self._membership.pop(peer_id, None)
        if room is None:
            return False

        members = self._rooms.get(room, {})
        name = members.pop(peer_id, "")
        if not members:
            self._rooms.pop(room, None)
        else:
            self.hub.broadcast(
                PEER_LEFT_EVENT,
                {"peerId": peer_id, "name": name},
                only=list(members),
            )
        logger.info("Peer %s left room %s", peer_id[:8], room)
        return True

    def relay(self, event: str, peer_id: str, data: Any) -> bool:
        """Forward an offer, answer or ICE candidate to the addressed peer.

        The payload is passed through untouched. Frames without a target,
        without a payload, or addressed to an unknown peer are dropped.
        """
        field = RELAYED_EVENTS.get(event)
        if field is None or not isinstance(data, dict):
            return False
        target = data.get("to")
        payload = data.get(field)
        if not target or payload is None or not isinstance(target, str):
            return False
        return self.hub.send(target, event, {"from": peer_id, field: payload})

    def room_message(self, peer_id: str, data: Any) -> bool:
        """Broadcast a chat line to the sender's room or an explicitly named one.

        Returns:
            True if the message was delivered to the room.
        """
        if not isinstance(data, dict):
            return False
        text = _clean(data.get("text"), self.text_max_length)
        room = _clean(data.get("roomId"), 200) or self._membership.get(peer_id)
        if not text or not room or room not in self._rooms:
            return False

        name = (
            _clean(data.get("name"), self.name_max_length)
            or self._rooms[room].get(peer_id)
            or "Anon"
        )
        ts = data.get("ts")
        message = {
            "id": _clean(data.get("id"), 64) or secrets.token_hex(8),
            "roomId": room,
            "from": peer_id,
            "name": name,
            "text": text,
            "ts": ts if isinstance(ts, (int, float)) and not isinstance(ts, bool)
            else epoch_millis(self._clock()),
        }
        self.hub.broadcast(ROOM_MESSAGE_EVENT, message, only=list(self._rooms[room]))
        return True
