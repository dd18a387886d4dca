# mypy: ignore-errors
# tests/test_fanout.py
"""Tests for the connection hub, store fan-out and the chat relay."""

from __future__ import annotations

import asyncio
import random

import pytest

from lurk.core.settings import RateLimitRule
from lurk.services.chat import ChatRelay, extract_text
from lurk.services.fanout import ConnectionHub, Fanout, envelope
from lurk.services.names import NameRegistry
from lurk.services.rate_limit import ChatTokenBucket, RateLimiter
from tests.conftest import drain, open_connection


def test_envelope_shape() -> None:
    assert envelope("session", {"id": "x"}) == {"event": "session", "data": {"id": "x"}}


def test_send_targets_one_connection(hub) -> None:
    alice = open_connection(hub, "alice")
    bob = open_connection(hub, "bob")

    assert hub.send("alice", "ping", {"n": 1}) is True
    assert hub.send("nobody", "ping", {}) is False

    assert drain(alice) == [{"event": "ping", "data": {"n": 1}}]
    assert drain(bob) == []


def test_broadcast_respects_exclude_and_only(hub) -> None:
    connections = [open_connection(hub, cid) for cid in ("a", "b", "c")]

    assert hub.broadcast("all", 1) == 3
    assert hub.broadcast("not-a", 2, exclude=["a"]) == 2
    assert hub.broadcast("only-c", 3, only=["c", "ghost"]) == 1

    a, b, c = (drain(conn) for conn in connections)
    assert [f["event"] for f in a] == ["all"]
    assert [f["event"] for f in b] == ["all", "not-a"]
    assert [f["event"] for f in c] == ["all", "not-a", "only-c"]


def test_full_queue_drops_without_affecting_others() -> None:
    hub = ConnectionHub(queue_size=1)
    slow = open_connection(hub, "slow")
    fast = open_connection(hub, "fast")

    hub.send("slow", "first", None)
    delivered = hub.broadcast("second", None)

    assert delivered == 1
    assert [f["event"] for f in drain(slow)] == ["first"]
    assert [f["event"] for f in drain(fast)] == ["second"]


def test_close_forgets_connection(hub) -> None:
    open_connection(hub, "gone")
    assert "gone" in hub
    assert hub.close("gone") is not None
    assert "gone" not in hub
    assert hub.close("gone") is None
    assert hub.broadcast("any", None) == 0


@pytest.mark.asyncio
async def test_pump_forwards_in_order_and_stops_on_failure(hub) -> None:
    connection = open_connection(hub, "pumped")
    sent = []

    async def sender(frame):
        if frame["event"] == "boom":
            raise RuntimeError("socket closed")
        sent.append(frame["event"])

    for event in ("one", "two", "boom", "never"):
        hub.send("pumped", event, None)

    await asyncio.wait_for(hub.pump(connection, sender), timeout=1)

    assert sent == ["one", "two"]


def test_fanout_broadcasts_store_events(store, hub, event_bus) -> None:
    Fanout(hub, event_bus)
    viewer = open_connection(hub, "viewer")

    thread = store.create_thread("Live", body="now")
    reply = store.add_reply(thread.id, "hello")
    store.add_reaction(thread.id, "👍")

    frames = drain(viewer)
    assert [f["event"] for f in frames] == ["thread-created", "reply-added", "reaction-updated"]

    created = frames[0]["data"]
    assert created["id"] == thread.id
    assert created["title"] == "Live"
    assert "expiresAt" in created and "createdAt" in created
    assert frames[1]["data"]["threadId"] == thread.id
    assert frames[1]["data"]["reply"]["id"] == reply.id
    assert frames[2]["data"]["reactions"]["👍"] == 1


def test_fanout_announces_purge(store, hub, event_bus, clock) -> None:
    fanout = Fanout(hub, event_bus)
    viewer = open_connection(hub, "viewer")
    thread = store.create_thread("Short lived")
    drain(viewer)

    clock.advance(3600)
    store.purge_expired()

    assert drain(viewer) == [{"event": "threads-purged", "data": {"ids": [thread.id]}}]

    fanout.detach()
    store.create_thread("Unheard")
    assert drain(viewer) == []


@pytest.fixture()
def names(clock) -> NameRegistry:
    return NameRegistry(clock=clock, rng=random.Random(3))


@pytest.fixture()
def chat(hub, names, clock) -> ChatRelay:
    limiter = RateLimiter(
        {"chat-message": RateLimitRule(window_seconds=60, cap=30, block_seconds=30)},
        clock=clock,
    )
    return ChatRelay(hub, names, limiter, max_length=20, clock=clock)


@pytest.mark.parametrize(
    ("data", "expected"),
    [("hi", "hi"), ({"text": "hey"}, "hey"), ({"text": 5}, ""), (None, ""), (["x"], "")],
)
def test_extract_text(data, expected) -> None:
    assert extract_text(data) == expected


def test_greet_sends_session_and_announces_join(hub, chat) -> None:
    other = open_connection(hub, "other")
    newcomer = open_connection(hub, "new", name="ghost0001")

    chat.greet(newcomer)

    own = drain(newcomer)
    assert own[0] == {"event": "session", "data": {"id": "new", "name": "ghost0001"}}
    joined = drain(other)[0]["data"]
    assert joined["user"] == "system"
    assert joined["text"] == "ghost0001 joined"
    assert joined["system"] is True


def test_chat_message_is_broadcast_to_everyone(hub, chat, clock) -> None:
    sender = open_connection(hub, "s", name="ghost1111")
    listener = open_connection(hub, "l")

    assert chat.handle(sender, {"text": "  hello there  "}) is True

    for conn in (sender, listener):
        line = drain(conn)[0]
        assert line["event"] == "chat-message"
        assert line["data"]["user"] == "ghost1111"
        assert line["data"]["text"] == "  hello there  "
        assert line["data"]["time"] == clock.now.isoformat()


def test_blank_chat_message_is_ignored(hub, chat) -> None:
    sender = open_connection(hub, "s")
    assert chat.handle(sender, "   ") is False
    assert drain(sender) == []


def test_over_long_chat_message_is_refused_not_truncated(hub, chat) -> None:
    sender = open_connection(hub, "s")
    listener = open_connection(hub, "l")

    assert chat.handle(sender, "a" * 21) is False
    assert chat.handle(sender, "b" * 20) is True

    frames = drain(sender)
    assert frames[0]["event"] == "chat-system"
    assert "max 20" in frames[0]["data"]["text"]
    assert frames[1]["data"]["text"] == "b" * 20
    assert [f["data"]["text"] for f in drain(listener)] == ["b" * 20]


def test_chat_bucket_rejection_notifies_sender_only(hub, chat, clock) -> None:
    sender = hub.open(
        "s", host="1.1.1.1", name="ghost2222",
        chat_bucket=ChatTokenBucket(capacity=2, refill_per_second=1.0, clock=clock),
    )
    listener = open_connection(hub, "l")

    assert chat.handle(sender, "one")
    assert chat.handle(sender, "two")
    assert chat.handle(sender, "three") is False

    assert [f["event"] for f in drain(sender)] == ["chat-message", "chat-message", "chat-system"]
    assert len(drain(listener)) == 2

    clock.advance(1)
    assert chat.handle(sender, "four")


def test_chat_cooldown_after_limiter_cap(hub, names, clock) -> None:
    limiter = RateLimiter(
        {"chat-message": RateLimitRule(window_seconds=60, cap=2, block_seconds=30)},
        clock=clock,
    )
    chat = ChatRelay(hub, names, limiter, clock=clock)
    sender = open_connection(hub, "s")

    chat.handle(sender, "a")
    chat.handle(sender, "b")
    assert chat.handle(sender, "c") is False

    notice = drain(sender)[-1]
    assert notice["event"] == "chat-system"
    assert "30s" in notice["data"]["text"]


def test_farewell_announces_departure(hub, chat) -> None:
    leaving = open_connection(hub, "x", name="ghost3333")
    stayer = open_connection(hub, "y")
    hub.close("x")

    chat.farewell(leaving)

    assert drain(stayer)[0]["data"]["text"] == "ghost3333 left"
