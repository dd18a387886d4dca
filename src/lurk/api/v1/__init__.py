"""Version 1 API endpoints."""

from .endpoints import (
    realtime_router,
    reports_router,
    system_router,
    threads_router,
)

__all__ = [
    "threads_router",
    "reports_router",
    "realtime_router",
    "system_router",
]
