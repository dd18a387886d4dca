"""Thread-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema emitting camelCase field names on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ReplyCreate(CamelModel):
    """Schema for posting a reply. Emptiness is checked by the store."""

    text: str = Field(default="", description="Reply text")


class ReplyResponse(CamelModel):
    """Schema for a reply returned by the API."""

    id: int
    text: str
    created_at: datetime


class ReactionCreate(CamelModel):
    """Schema for adding a reaction."""

    emoji: str = Field(default="", description="One of the configured reaction symbols")


class ReactionResponse(CamelModel):
    """Reaction counts of a thread after an increment."""

    thread_id: int
    reactions: dict[str, int]


class ViewResponse(CamelModel):
    """View counter of a thread after an increment."""

    thread_id: int
    views: int


class ThreadResponse(CamelModel):
    """Schema for thread information returned by the API."""

    id: int
    title: str
    body: str | None = None
    image: str | None = None
    sensitive: bool = False
    created_at: datetime
    expires_at: datetime
    views: int
    reactions: dict[str, int]
    replies: list[ReplyResponse]


def dump(model: BaseModel) -> dict:
    """Serialize a schema into the JSON-ready camelCase form used on the socket."""
    return model.model_dump(mode="json", by_alias=True)
