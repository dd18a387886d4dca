"""API endpoint modules for version 1."""

from .realtime import router as realtime_router
from .reports import router as reports_router
from .system import router as system_router
from .threads import router as threads_router

__all__ = [
    "threads_router",
    "reports_router",
    "realtime_router",
    "system_router",
]
