"""
ytclipper Backend — Timestamp Note SQLAlchemy Model
=====================================================

What:  ORM model for the `timestamps` table: a note pinned to a moment in a video.
Who:   Used by TimestampService for create / list / soft delete.

Table Design Rationale:
    - user_id FK → accounts.id: every note belongs to exactly one account
    - timestamp: seconds into the video (float, sub-second precision)
    - tags: PostgreSQL text[]; no separate tags table until tags need metadata
    - deleted_at: soft delete; NULL means live

    Index on (user_id, video_id, timestamp):
        The only read path is "this user's notes for this video, in playback order".
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Float, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import ARRAY, UUID, TIMESTAMP

from ytclipper.database import Base


class Timestamp(Base):
    """A user's note at a point in a video."""

    __tablename__ = "timestamps"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    video_id: Mapped[str] = mapped_column(String(64), nullable=False)

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    timestamp: Mapped[float] = mapped_column(Float, nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[List[str]] = mapped_column(
        ARRAY(String(64)), nullable=False, default=list, server_default=text("'{}'")
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, default=None
    )

    __table_args__ = (
        Index("idx_timestamps_user_video", "user_id", "video_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<Timestamp(id={self.id}, video_id='{self.video_id}', "
            f"timestamp={self.timestamp})>"
        )
