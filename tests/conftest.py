# tests/conftest.py
from __future__ import annotations

import io
import random
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from lurk.core.settings import Settings
from lurk.main import create_app
from lurk.services import Board, ConnectionHub
from lurk.services.events import EventBus, StoreEvent
from lurk.services.fanout import Connection
from lurk.services.store import ContentStore

START = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
REACTIONS = ["👍", "❤️", "😂", "😮", "🔥"]


def make_image(image_format: str, size: tuple[int, int] = (4, 4)) -> bytes:
    """Encode a tiny solid image in ``image_format`` with Pillow."""
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 40, 90)).save(buffer, format=image_format)
    return buffer.getvalue()


PNG_BYTES = make_image("PNG")
JPEG_BYTES = make_image("JPEG")
GIF_BYTES = make_image("GIF")
WEBP_BYTES = make_image("WEBP")

# Valid PNG signature followed by garbage.
FAKE_PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"this is not an image at all"


class FakeClock:
    """Manually advanced clock shared by every service under test."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class EventRecorder:
    """Collects store events in publish order."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[StoreEvent] = []
        bus.subscribe(self.events.append)

    def named(self, name: str) -> list[StoreEvent]:
        return [event for event in self.events if event.name == name]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    """Settings isolated to a per-test directory."""
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        reports_path=str(tmp_path / "reports.jsonl"),
        reaction_emojis=REACTIONS,
    )


@pytest.fixture()
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def recorder(event_bus: EventBus) -> EventRecorder:
    return EventRecorder(event_bus)


@pytest.fixture()
def store(clock: FakeClock, event_bus: EventBus) -> ContentStore:
    return ContentStore(ttl_seconds=3600, reactions=REACTIONS, events=event_bus, clock=clock)


@pytest.fixture()
def hub() -> ConnectionHub:
    return ConnectionHub(queue_size=64)


def open_connection(hub: ConnectionHub, connection_id: str, name: str | None = None) -> Connection:
    return hub.open(connection_id, host=f"10.0.0.{len(hub) + 1}", name=name or f"ghost-{connection_id}")


def drain(connection: Connection) -> list[dict[str, Any]]:
    """Pop every queued frame of a connection."""
    frames = []
    while not connection.outbox.empty():
        frames.append(connection.outbox.get_nowait())
    return frames


@pytest.fixture()
def app(test_settings: Settings, clock: FakeClock) -> FastAPI:
    return create_app(test_settings, clock=clock, rng=random.Random(1234))


@pytest.fixture()
def board(app: FastAPI) -> Board:
    return app.state.board


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def receive_event(ws: Any, event: str, limit: int = 20) -> dict[str, Any]:
    """Read frames from a test WebSocket until one named ``event`` arrives."""
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["event"] == event:
            return frame["data"]
    raise AssertionError(f"{event} not received within {limit} frames")
