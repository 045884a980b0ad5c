from __future__ import annotations

from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from tubely.core.logging import get_logger
from tubely.db.models import User, Video
from tubely.ingest.pipeline import PipelineOrchestrator, UploadAsset


class VideoNotFound(LookupError):
    pass


class VideoForbidden(PermissionError):
    pass


class VideoConflict(RuntimeError):
    """The video record changed while the upload was being processed."""


class VideoService:
    def __init__(self, session: AsyncSession, pipeline: PipelineOrchestrator):
        self.session = session
        self.pipeline = pipeline
        self.logger = get_logger(component="video_service")

    async def ensure_user(self, user_id: str) -> User:
        user = await self.session.get(User, user_id)
        if user:
            return user
        user = User(id=user_id)
        self.session.add(user)
        await self.session.flush()
        return user

    async def create_video(self, *, user_id: str, title: str, description: Optional[str] = None) -> Video:
        await self.ensure_user(user_id)
        video = Video(id=uuid4().hex, user_id=user_id, title=title, description=description)
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def get_video(self, video_id: str) -> Video | None:
        return await self.session.get(Video, video_id)

    async def list_videos(self, user_id: str) -> list[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_owned_video(self, *, video_id: str, user_id: str) -> Video:
        video = await self.get_video(video_id)
        if video is None:
            raise VideoNotFound(video_id)
        if video.user_id != user_id:
            raise VideoForbidden(video_id)
        return video

    async def upload_video(self, *, video_id: str, user_id: str, upload: UploadAsset) -> Video:
        """Run the ingest pipeline for ``upload`` and point the video record at the result.

        The record's version is captured when it is loaded here; if another
        upload commits first, the update matches no row and ``VideoConflict``
        is raised instead of silently overwriting the newer URL.
        """
        video = await self.get_owned_video(video_id=video_id, user_id=user_id)
        published = await self.pipeline.ingest(upload, user_id)

        video.video_url = published.url
        try:
            await self.session.commit()
        except StaleDataError as exc:
            await self.session.rollback()
            self.logger.warning("video_update_conflict", video_id=video_id, orphaned_key=published.key)
            raise VideoConflict(video_id) from exc

        await self.session.refresh(video)
        self.logger.info("video_url_updated", video_id=video_id, key=published.key, version=video.version)
        return video


def video_snapshot(video: Video) -> dict[str, Any]:
    return {
        "id": video.id,
        "user_id": video.user_id,
        "title": video.title,
        "description": video.description,
        "video_url": video.video_url,
        "thumbnail_url": video.thumbnail_url,
        "version": video.version,
        "created_at": video.created_at,
        "updated_at": video.updated_at,
    }


__all__ = [
    "VideoService",
    "VideoNotFound",
    "VideoForbidden",
    "VideoConflict",
    "video_snapshot",
]
