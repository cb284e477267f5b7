"""
ytclipper Backend — Timestamp Note Schemas
============================================

What:  Pydantic models for creating, listing and deleting timestamp notes.
Why:   API contracts change independently of the table; user_id is never
       accepted from the client, it always comes from the session.
"""

import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, field_validator


class CreateTimestampRequest(BaseModel):
    """
    What:  Body of POST /api/v1/timestamps.

    Tags are trimmed, de-duplicated (order kept) and empty ones dropped.
    """
    video_id: str = Field(min_length=1, max_length=64, description="YouTube video id")
    timestamp: float = Field(ge=0, description="Seconds into the video")
    title: str = Field(default="", max_length=255)
    note: str = Field(default="", max_length=10_000)
    tags: List[str] = Field(default_factory=list, max_length=20)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        seen = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                if len(tag) > 64:
                    raise ValueError("Tags must be at most 64 characters")
                seen.append(tag)
        return seen


class TimestampResponse(BaseModel):
    id: uuid.UUID
    video_id: str
    user_id: uuid.UUID
    timestamp: float
    title: str
    note: str
    tags: List[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CreateTimestampResponse(BaseModel):
    timestamp: TimestampResponse


class TimestampListResponse(BaseModel):
    """Notes for one video, in playback order."""
    timestamps: List[TimestampResponse]
    video_id: str
    user_id: uuid.UUID


class DeleteTimestampResponse(BaseModel):
    message: str = "Timestamp deleted successfully"
    timestamp_id: uuid.UUID
    user_id: uuid.UUID
