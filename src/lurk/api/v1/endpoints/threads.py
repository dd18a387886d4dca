"""Thread-related endpoints for the Lurk API."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from lurk.api.v1.dependencies import BoardDep, rate_limited
from lurk.core.errors import IOFailure, NotFoundError, ValidationError
from lurk.schemas import (
    ReactionCreate,
    ReactionResponse,
    ReplyCreate,
    ReplyResponse,
    ThreadResponse,
    ViewResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/threads", tags=["threads"])

_TRUTHY = frozenset({"1", "true", "on", "yes"})


def _is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


async def _read_upload(image: UploadFile, max_bytes: int) -> bytes:
    """Read at most one byte past the limit so oversize files are detected cheaply."""
    try:
        return await image.read(max_bytes + 1)
    finally:
        await image.close()


@router.get("", response_model=list[ThreadResponse])
async def list_threads(board: BoardDep) -> list[ThreadResponse]:
    """List live threads, newest first.

    Expired threads are purged before the listing is built.
    """
    return [ThreadResponse.model_validate(t) for t in board.store.list_threads()]


@router.get("/most-viewed", response_model=list[ThreadResponse])
async def most_viewed(
    board: BoardDep,
    limit: int = Query(5, description="Number of threads, clamped to 1-10"),
) -> list[ThreadResponse]:
    """Return the most viewed live threads."""
    return [ThreadResponse.model_validate(t) for t in board.store.most_viewed(limit)]


@router.get("/{thread_id}", response_model=ThreadResponse)
async def get_thread(thread_id: int, board: BoardDep) -> ThreadResponse:
    """Get a specific live thread by ID.

    Raises:
        HTTPException: If the thread does not exist or has expired
    """
    try:
        thread = board.store.get_thread(thread_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Thread not found",
        ) from exc
    return ThreadResponse.model_validate(thread)


@router.post(
    "",
    response_model=ThreadResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("create-thread"))],
)
async def create_thread(
    board: BoardDep,
    title: Annotated[str, Form()] = "",
    body: Annotated[str | None, Form()] = None,
    sensitive: Annotated[str | None, Form()] = None,
    image: Annotated[UploadFile | None, File()] = None,
) -> ThreadResponse:
    """Create a new thread, optionally with an image.

    Args:
        board: Application services
        title: Required thread title
        body: Optional body text
        sensitive: Checkbox value; truthy strings mark the image as sensitive
        image: Optional image upload (jpeg, png, webp or gif)

    Returns:
        The created thread

    Raises:
        HTTPException: 400 if the title is missing or the image is rejected,
                      500 if the image could not be stored
    """
    if not title.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title is required",
        )

    image_ref: str | None = None
    if image is not None and image.filename:
        data = await _read_upload(image, board.uploads.max_bytes)
        try:
            image_ref = await board.uploads.save(image.content_type, data)
        except ValidationError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            ) from exc
        except IOFailure as exc:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not store image",
            ) from exc

    try:
        thread = board.store.create_thread(
            title=title,
            body=body,
            image=image_ref,
            sensitive=_is_truthy(sensitive),
        )
    except ValidationError as exc:
        if image_ref:
            board.uploads.discard(image_ref)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return ThreadResponse.model_validate(thread)


@router.post(
    "/{thread_id}/replies",
    response_model=ReplyResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limited("add-reply"))],
)
async def add_reply(
    thread_id: int,
    reply_data: ReplyCreate,
    board: BoardDep,
) -> ReplyResponse:
    """Reply to a live thread.

    Raises:
        HTTPException: 404 if the thread is gone, 400 if the text is empty
    """
    try:
        reply = board.store.add_reply(thread_id, reply_data.text)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Thread not found",
        ) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ReplyResponse.model_validate(reply)


@router.post(
    "/{thread_id}/react",
    response_model=ReactionResponse,
    dependencies=[Depends(rate_limited("add-reaction"))],
)
async def add_reaction(
    thread_id: int,
    reaction: ReactionCreate,
    board: BoardDep,
) -> ReactionResponse:
    """Add one reaction to a live thread and return the updated counts.

    Raises:
        HTTPException: 404 if the thread is gone, 400 if the emoji is not allowed
    """
    try:
        reactions = board.store.add_reaction(thread_id, reaction.emoji)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Thread not found",
        ) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return ReactionResponse(thread_id=thread_id, reactions=reactions)


@router.post("/{thread_id}/view", response_model=ViewResponse)
async def record_view(thread_id: int, board: BoardDep) -> ViewResponse:
    """Count one view of a live thread.

    Raises:
        HTTPException: 404 if the thread is gone
    """
    try:
        views = board.store.record_view(thread_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Thread not found",
        ) from exc
    return ViewResponse(thread_id=thread_id, views=views)
