"""In-memory entities for the Lurk application."""

from .report import DEFAULT_REPORT_REASON, REPORT_REASONS, Report
from .thread import Reply, Thread

__all__ = [
    "Reply", "Thread",
    "Report", "REPORT_REASONS", "DEFAULT_REPORT_REASON",
]
