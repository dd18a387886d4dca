"""Domain exceptions shared by the Lurk services.

The API layer maps these onto HTTP status codes; the real-time channel logs
and drops them.
"""


class LurkError(RuntimeError):
    """Base exception for all Lurk domain failures."""


class ValidationError(LurkError):
    """Raised when input does not satisfy the entity rules (HTTP 400)."""


class NotFoundError(LurkError):
    """Raised when a thread is unknown or has already expired (HTTP 404)."""


class RateLimitError(LurkError):
    """Raised when an identity exceeded the limits for an action (HTTP 429).

    Attributes:
        retry_after: Seconds the caller should wait before retrying.
    """

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class IOFailure(LurkError):
    """Raised when writing or deleting an uploaded file fails."""


class TransportFailure(LurkError):
    """Raised when a real-time message cannot be delivered to a connection."""
