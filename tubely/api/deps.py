from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubely.core.auth import AuthContext, get_auth_context
from tubely.core.config import Settings, get_settings
from tubely.ingest.pipeline import PipelineOrchestrator
from tubely.services.video_service import VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_pipeline(request: Request) -> PipelineOrchestrator:
    pipeline: PipelineOrchestrator = request.app.state.pipeline
    return pipeline


def get_app_settings() -> Settings:
    return get_settings()


async def get_video_service(
    session: AsyncSession = Depends(get_session),
    pipeline: PipelineOrchestrator = Depends(get_pipeline),
) -> AsyncIterator[VideoService]:
    yield VideoService(session, pipeline)


VideoServiceDependency = Annotated[VideoService, Depends(get_video_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


__all__ = [
    "get_session",
    "get_pipeline",
    "get_app_settings",
    "get_video_service",
    "VideoServiceDependency",
    "AuthDependency",
]
