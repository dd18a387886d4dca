"""WebSocket endpoint carrying board updates, global chat and video signaling.

Frames in both directions are JSON objects ``{"event": ..., "data": ...}``.

Client -> server events:

- ``chat-message``: ``{"text": ...}`` or a bare string
- ``join-video-room``: ``{"roomId": ..., "name": ...}``
- ``leave-video-room``
- ``video-offer`` / ``video-answer``: ``{"to": ..., "description": ...}``
- ``video-ice-candidate``: ``{"to": ..., "candidate": ...}``
- ``video-room-message``: ``{"text": ..., "name"?, "id"?, "ts"?, "roomId"?}``
"""

import asyncio
import contextlib
import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket

from lurk.api.v1.dependencies import client_identity
from lurk.services import Board
from lurk.services.fanout import Connection
from lurk.services.signaling import RELAYED_EVENTS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def dispatch(board: Board, connection: Connection, event: Any, data: Any) -> bool:
    """Route one inbound frame to the chat relay or the signaling relay.

    Returns:
        True if the frame was acted upon.
    """
    if event == "chat-message":
        return board.chat.handle(connection, data)
    if event == "join-video-room":
        payload = data if isinstance(data, dict) else {}
        return board.signaling.join(
            connection.id,
            payload.get("roomId"),
            payload.get("name"),
            default_name=connection.name,
        )
    if event == "leave-video-room":
        return board.signaling.leave(connection.id)
    if event in RELAYED_EVENTS:
        return board.signaling.relay(event, connection.id, data)
    if event == "video-room-message":
        return board.signaling.room_message(connection.id, data)

    logger.debug("Unknown event %r from %s", event, connection.id[:8])
    return False


def parse_frame(raw: str) -> tuple[Any, Any] | None:
    """Decode a text frame into ``(event, data)``; None if malformed."""
    try:
        frame = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        return None
    return frame["event"], frame.get("data")


@router.websocket("/ws")
async def realtime(websocket: WebSocket) -> None:
    """Serve one real-time client until it disconnects.

    On connect the client receives ``session`` with its anonymous name and
    everyone sees a join line in chat. Cleanup on disconnect leaves the video
    room, releases the name and announces the departure.
    """
    board: Board = websocket.app.state.board
    await websocket.accept()

    connection = board.hub.open(
        uuid.uuid4().hex,
        host=client_identity(websocket, board.settings.trust_forwarded_for),
        name=board.names.assign(),
        chat_bucket=board.chat_bucket(),
    )
    writer = asyncio.create_task(board.hub.pump(connection, websocket.send_json))
    board.chat.greet(connection)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                continue
            parsed = parse_frame(raw)
            if parsed is None:
                logger.debug("Malformed frame from %s ignored", connection.id[:8])
                continue
            try:
                dispatch(board, connection, *parsed)
            except Exception:
                logger.exception("Failed to handle %r from %s", parsed[0], connection.id[:8])
    finally:
        board.signaling.leave(connection.id)
        board.hub.close(connection.id)
        board.names.release(connection.name)
        board.chat.farewell(connection)
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer
