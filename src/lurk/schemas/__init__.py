"""Pydantic schemas for the Lurk API."""

from .report import ReportAccepted, ReportCreate
from .thread import (
    ReactionCreate,
    ReactionResponse,
    ReplyCreate,
    ReplyResponse,
    ThreadResponse,
    ViewResponse,
    dump,
)

__all__ = [
    "ReactionCreate",
    "ReactionResponse",
    "ReplyCreate",
    "ReplyResponse",
    "ReportAccepted",
    "ReportCreate",
    "ThreadResponse",
    "ViewResponse",
    "dump",
]
