"""Business logic services for the Lurk application."""

from .board import Board, build_board
from .chat import ChatRelay
from .events import EventBus
from .fanout import ConnectionHub, Fanout
from .names import NameRegistry
from .purge import PurgeScheduler
from .rate_limit import ChatTokenBucket, RateLimiter
from .reports import ReportSink
from .signaling import SignalingRelay
from .store import ContentStore
from .uploads import UploadStorage

__all__ = [
    "Board",
    "build_board",
    "ChatRelay",
    "ChatTokenBucket",
    "ConnectionHub",
    "ContentStore",
    "EventBus",
    "Fanout",
    "NameRegistry",
    "PurgeScheduler",
    "RateLimiter",
    "ReportSink",
    "SignalingRelay",
    "UploadStorage",
]
