"""Report-related Pydantic schemas."""

from typing import Any

from pydantic import field_validator

from .thread import CamelModel


class ReportCreate(CamelModel):
    """Schema for submitting an abuse report.

    Every field is optional and loosely typed: unexpected values are
    normalized by the report sink instead of being rejected.
    """

    reason: Any = None
    details: str | None = None
    thread_id: str | None = None
    reply_id: str | None = None

    @field_validator("details", "thread_id", "reply_id", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str | None:
        if value is None:
            return None
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
        return None


class ReportAccepted(CamelModel):
    """Acknowledgement returned for every accepted report."""

    ok: bool = True
