# mypy: ignore-errors
# tests/v1/test_threads.py
"""Tests for thread endpoints."""

from __future__ import annotations

from fastapi import status

from tests.conftest import FAKE_PNG_BYTES, JPEG_BYTES, PNG_BYTES, REACTIONS


def _create(client, title: str = "Hello", **fields):
    return client.post("/threads", data={"title": title, **fields})


def test_create_thread_text_only(client) -> None:
    response = _create(client, "  First post ", body="Some body")

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["title"] == "First post"
    assert data["body"] == "Some body"
    assert data["image"] is None
    assert data["sensitive"] is False
    assert data["views"] == 0
    assert data["replies"] == []
    assert data["reactions"] == {emoji: 0 for emoji in REACTIONS}
    assert {"createdAt", "expiresAt"} <= data.keys()


def test_create_thread_with_image_is_served(client, board) -> None:
    response = client.post(
        "/threads",
        data={"title": "Look", "sensitive": "on"},
        files={"image": ("cat.png", PNG_BYTES, "image/png")},
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["sensitive"] is True
    assert data["image"].startswith("/uploads/")
    assert data["image"].endswith(".png")

    served = client.get(data["image"])
    assert served.status_code == status.HTTP_200_OK
    assert served.content == PNG_BYTES


def test_create_thread_requires_title(client) -> None:
    response = _create(client, "   ")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert client.get("/threads").json() == []


def test_create_thread_rejects_long_title(client, board) -> None:
    response = _create(client, "x" * (board.settings.title_max_length + 1))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_create_thread_rejects_bad_image(client, board) -> None:
    mismatched = client.post(
        "/threads",
        data={"title": "Fake"},
        files={"image": ("cat.png", JPEG_BYTES, "image/png")},
    )
    unsupported = client.post(
        "/threads",
        data={"title": "Vector"},
        files={"image": ("x.svg", b"<svg/>", "image/svg+xml")},
    )

    assert mismatched.status_code == status.HTTP_400_BAD_REQUEST
    assert unsupported.status_code == status.HTTP_400_BAD_REQUEST
    assert len(board.store) == 0
    assert not any(board.uploads.directory.iterdir())


def test_create_thread_rejects_corrupt_image_with_valid_signature(client, board) -> None:
    """Only the leading bytes look like a PNG; the rest is not an image."""
    response = client.post(
        "/threads",
        data={"title": "Disguised"},
        files={"image": ("x.png", FAKE_PNG_BYTES, "image/png")},
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert len(board.store) == 0
    assert not any(board.uploads.directory.iterdir())


def test_create_thread_rejects_oversized_image(client, board) -> None:
    big = PNG_BYTES + b"\x00" * board.uploads.max_bytes
    response = client.post(
        "/threads",
        data={"title": "Huge"},
        files={"image": ("big.png", big, "image/png")},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_list_threads_newest_first(client, clock) -> None:
    first = _create(client, "first").json()
    clock.advance(1)
    second = _create(client, "second").json()

    ids = [t["id"] for t in client.get("/threads").json()]
    assert ids == [second["id"], first["id"]]


def test_get_thread(client) -> None:
    created = _create(client).json()

    response = client.get(f"/threads/{created['id']}")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == created["id"]
    assert client.get("/threads/1").status_code == status.HTTP_404_NOT_FOUND


def test_thread_expires_after_ttl(client, clock) -> None:
    """A thread is listed until its expiry and gone right after."""
    created = _create(client, "ephemeral").json()

    clock.advance(3599)
    assert [t["id"] for t in client.get("/threads").json()] == [created["id"]]

    clock.advance(2)
    assert client.get("/threads").json() == []
    assert client.get(f"/threads/{created['id']}").status_code == status.HTTP_404_NOT_FOUND


def test_add_reply(client) -> None:
    thread = _create(client).json()

    response = client.post(f"/threads/{thread['id']}/replies", json={"text": " hi "})

    assert response.status_code == status.HTTP_201_CREATED
    reply = response.json()
    assert reply["text"] == "hi"
    assert reply["id"] > thread["id"]
    assert "createdAt" in reply
    stored = client.get(f"/threads/{thread['id']}").json()
    assert [r["id"] for r in stored["replies"]] == [reply["id"]]


def test_add_reply_errors(client, clock) -> None:
    thread = _create(client).json()

    blank = client.post(f"/threads/{thread['id']}/replies", json={"text": "  "})
    missing = client.post("/threads/999/replies", json={"text": "hello"})
    clock.advance(3600)
    expired = client.post(f"/threads/{thread['id']}/replies", json={"text": "late"})

    assert blank.status_code == status.HTTP_400_BAD_REQUEST
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert expired.status_code == status.HTTP_404_NOT_FOUND


def test_add_reaction(client) -> None:
    thread = _create(client).json()

    client.post(f"/threads/{thread['id']}/react", json={"emoji": "🔥"})
    response = client.post(f"/threads/{thread['id']}/react", json={"emoji": "🔥"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["threadId"] == thread["id"]
    assert response.json()["reactions"]["🔥"] == 2
    assert response.json()["reactions"]["👍"] == 0


def test_add_reaction_errors(client) -> None:
    thread = _create(client).json()

    unknown = client.post(f"/threads/{thread['id']}/react", json={"emoji": "🦄"})
    missing = client.post("/threads/42/react", json={"emoji": "👍"})

    assert unknown.status_code == status.HTTP_400_BAD_REQUEST
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_record_view_and_most_viewed(client, clock) -> None:
    popular = _create(client, "popular").json()
    clock.advance(1)
    quiet = _create(client, "quiet").json()

    for _ in range(3):
        response = client.post(f"/threads/{popular['id']}/view")
    client.post(f"/threads/{quiet['id']}/view")

    assert response.json() == {"threadId": popular["id"], "views": 3}
    top = client.get("/threads/most-viewed", params={"limit": 1}).json()
    assert [t["id"] for t in top] == [popular["id"]]
    both = client.get("/threads/most-viewed").json()
    assert [t["id"] for t in both] == [popular["id"], quiet["id"]]
    assert client.post("/threads/5/view").status_code == status.HTTP_404_NOT_FOUND


def test_create_thread_rate_limit(client, clock) -> None:
    """The sixth thread within a minute is refused until the block lifts."""
    for index in range(5):
        assert _create(client, f"post {index}").status_code == status.HTTP_201_CREATED

    blocked = _create(client, "one too many")

    assert blocked.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert blocked.headers["Retry-After"] == "60"
    assert blocked.json()["detail"]["retryAfter"] == 60

    clock.advance(60)
    assert _create(client, "after cooldown").status_code == status.HTTP_201_CREATED


def test_rate_limit_uses_forwarded_for_when_trusted(client, board) -> None:
    board.settings.trust_forwarded_for = True

    for _ in range(5):
        _create(client)
    blocked = _create(client)
    other = client.post(
        "/threads", data={"title": "proxied"}, headers={"X-Forwarded-For": "203.0.113.9"}
    )

    assert blocked.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert other.status_code == status.HTTP_201_CREATED
