"""
ytclipper Backend — Timestamp Service
=======================================

What:  Create, list and soft-delete timestamp notes for the signed-in account.
Who:   Called by routes/timestamps.py; the account always comes from RequireAuth.

Ownership:
    list   → filters by user_id, so other users' notes are simply invisible
    delete → loads by id first; another user's note is 403, a missing or
             already deleted one is 404

Error Handling Strategy:
    SQLAlchemy errors are wrapped in DatabaseError (generic message to the
    client, details in the log). Our own exceptions propagate untouched.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import asc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ytclipper.exceptions import DatabaseError, ForbiddenError, NotFoundError
from ytclipper.models.timestamp import Timestamp
from ytclipper.schemas.timestamp import (
    CreateTimestampRequest,
    CreateTimestampResponse,
    DeleteTimestampResponse,
    TimestampListResponse,
    TimestampResponse,
)

logger = logging.getLogger(__name__)


class TimestampService:
    """Stateless; receives the session with every call."""

    async def create_timestamp(
        self, db: AsyncSession, user_id: UUID, request: CreateTimestampRequest
    ) -> CreateTimestampResponse:
        now = datetime.now(timezone.utc)
        timestamp = Timestamp(
            video_id=request.video_id,
            user_id=user_id,
            timestamp=request.timestamp,
            title=request.title,
            note=request.note,
            tags=request.tags,
            created_at=now,
            updated_at=now,
        )
        db.add(timestamp)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error saving timestamp: %s", str(e))
            raise DatabaseError(
                message="Failed to save timestamp",
                context={"video_id": request.video_id},
            ) from e

        logger.info("Timestamp %s created on video %s", timestamp.id, timestamp.video_id)
        return CreateTimestampResponse(timestamp=TimestampResponse.model_validate(timestamp))

    async def list_timestamps(
        self, db: AsyncSession, user_id: UUID, video_id: str
    ) -> TimestampListResponse:
        """
        Query plan:
            WHERE user_id = :uid AND video_id = :vid AND deleted_at IS NULL
            ORDER BY timestamp ASC
            → idx_timestamps_user_video covers filter and sort
        """
        query = (
            select(Timestamp)
            .where(
                Timestamp.user_id == user_id,
                Timestamp.video_id == video_id,
                Timestamp.deleted_at.is_(None),
            )
            .order_by(asc(Timestamp.timestamp))
        )
        try:
            result = await db.execute(query)
            rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing timestamps: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve timestamps. Please try again.",
                context={"video_id": video_id},
            ) from e

        return TimestampListResponse(
            timestamps=[TimestampResponse.model_validate(row) for row in rows],
            video_id=video_id,
            user_id=user_id,
        )

    async def delete_timestamp(
        self, db: AsyncSession, user_id: UUID, timestamp_id: UUID
    ) -> DeleteTimestampResponse:
        try:
            result = await db.execute(
                select(Timestamp).where(
                    Timestamp.id == timestamp_id,
                    Timestamp.deleted_at.is_(None),
                )
            )
            timestamp = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching timestamp %s: %s", timestamp_id, str(e))
            raise DatabaseError(context={"timestamp_id": str(timestamp_id)}) from e

        if timestamp is None:
            raise NotFoundError(resource="timestamp", resource_id=str(timestamp_id))
        if timestamp.user_id != user_id:
            raise ForbiddenError(context={"timestamp_id": str(timestamp_id)})

        now = datetime.now(timezone.utc)
        timestamp.deleted_at = now
        timestamp.updated_at = now
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error deleting timestamp %s: %s", timestamp_id, str(e))
            raise DatabaseError(context={"timestamp_id": str(timestamp_id)}) from e

        logger.info("Timestamp %s deleted", timestamp_id)
        return DeleteTimestampResponse(timestamp_id=timestamp_id, user_id=user_id)


timestamp_service = TimestampService()
