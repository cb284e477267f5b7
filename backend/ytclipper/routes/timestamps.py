"""
ytclipper Backend — Timestamp Route Handlers
==============================================

What:  Create, list and delete timestamp notes on videos.
Who:   The browser extension and dashboard; every route requires a session.

Caching:
    Lists are per-user and change on every create/delete, so they are
    marked private and never stored by shared caches.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ytclipper.database import get_db_session
from ytclipper.routes.deps import RequireAuth
from ytclipper.schemas.common import ErrorResponse
from ytclipper.schemas.timestamp import (
    CreateTimestampRequest,
    CreateTimestampResponse,
    DeleteTimestampResponse,
    TimestampListResponse,
)
from ytclipper.services.timestamp_service import timestamp_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/timestamps", tags=["Timestamps"])


@router.post(
    "",
    response_model=CreateTimestampResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid input", "model": ErrorResponse},
        401: {"description": "Not authenticated", "model": ErrorResponse},
    },
    summary="Save a note at a point in a video",
)
async def create_timestamp(
    body: CreateTimestampRequest,
    account: RequireAuth,
    db: AsyncSession = Depends(get_db_session),
) -> CreateTimestampResponse:
    return await timestamp_service.create_timestamp(db=db, user_id=account.id, request=body)


@router.get(
    "/{video_id}",
    response_model=TimestampListResponse,
    responses={401: {"description": "Not authenticated", "model": ErrorResponse}},
    summary="List your notes for one video, in playback order",
)
async def list_timestamps(
    response: Response,
    account: RequireAuth,
    video_id: str = Path(min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db_session),
) -> TimestampListResponse:
    result = await timestamp_service.list_timestamps(db=db, user_id=account.id, video_id=video_id)
    response.headers["Cache-Control"] = "private, no-store"
    response.headers["X-Total-Count"] = str(len(result.timestamps))
    return result


@router.delete(
    "/{timestamp_id}",
    response_model=DeleteTimestampResponse,
    responses={
        401: {"description": "Not authenticated", "model": ErrorResponse},
        403: {"description": "Note belongs to another user", "model": ErrorResponse},
        404: {"description": "Note not found", "model": ErrorResponse},
    },
    summary="Delete one of your notes",
)
async def delete_timestamp(
    timestamp_id: UUID,
    account: RequireAuth,
    db: AsyncSession = Depends(get_db_session),
) -> DeleteTimestampResponse:
    return await timestamp_service.delete_timestamp(
        db=db, user_id=account.id, timestamp_id=timestamp_id
    )
