from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    ffprobe: bool


class VideoCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, json_schema_extra={"example": "Boots in the snow"})
    description: Optional[str] = Field(default=None, json_schema_extra={"example": "First hike of the year."})


class VideoResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str]
    video_url: Optional[str] = Field(description="Public URL of the fast-start MP4, once uploaded.")
    thumbnail_url: Optional[str]
    version: int
    created_at: datetime
    updated_at: datetime


__all__ = [
    "HealthResponse",
    "EnvCheckResponse",
    "VideoCreateRequest",
    "VideoResponse",
]
