"""Shared API dependencies for service access and abuse throttling."""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from starlette.requests import HTTPConnection

from lurk.core.errors import RateLimitError
from lurk.services import Board

UNKNOWN_CLIENT = "unknown"


def get_board(request: Request) -> Board:
    """Return the services bound to the running application."""
    return request.app.state.board


# Type alias for board dependency
BoardDep = Annotated[Board, Depends(get_board)]


def client_identity(connection: HTTPConnection, trust_forwarded_for: bool = False) -> str:
    """Derive the rate-limit identity of a caller from its network address.

    Args:
        connection: Incoming HTTP request or WebSocket.
        trust_forwarded_for: Use the first ``X-Forwarded-For`` hop when the
            app runs behind a reverse proxy.

    Returns:
        The client address, or ``"unknown"`` if none is available.
    """
    if trust_forwarded_for:
        forwarded = connection.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if connection.client and connection.client.host:
        return connection.client.host
    return UNKNOWN_CLIENT


def rate_limited(action: str) -> Callable[[Request, Board], Awaitable[None]]:
    """Build a dependency enforcing the rate limit configured for ``action``.

    Raises HTTP 429 with a ``Retry-After`` header when the caller is over
    its limit.
    """

    async def _enforce(request: Request, board: BoardDep) -> None:
        identity = client_identity(request, board.settings.trust_forwarded_for)
        try:
            board.limiter.enforce(action, identity)
        except RateLimitError as exc:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "rate_limit_exceeded",
                    "message": str(exc),
                    "retryAfter": exc.retry_after,
                },
                headers={"Retry-After": str(exc.retry_after)},
            ) from exc

    return _enforce
