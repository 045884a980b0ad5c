from __future__ import annotations

import os
from typing import NoReturn

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from tubely.api import deps
from tubely.ingest.errors import PipelineFailure, PublishFailure, ValidationFailure
from tubely.ingest.pipeline import UploadAsset
from tubely.services.video_service import VideoConflict, VideoForbidden, VideoNotFound, video_snapshot

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])


def _declared_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    handle = upload.file
    position = handle.tell()
    handle.seek(0, os.SEEK_END)
    size = handle.tell()
    handle.seek(position)
    return size


def _raise_for_failure(exc: PipelineFailure) -> NoReturn:
    if isinstance(exc, ValidationFailure):
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if exc.reason == "upload_too_large"
            else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=exc.reason) from exc
    if isinstance(exc, PublishFailure):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.as_dict()) from exc
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.as_dict()) from exc


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    video = await service.create_video(user_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse(**video_snapshot(video))


@router.get("", response_model=list[schemas.VideoResponse])
async def list_videos(service: deps.VideoServiceDependency, context: deps.AuthDependency) -> list[schemas.VideoResponse]:
    videos = await service.list_videos(context.user_id)
    return [schemas.VideoResponse(**video_snapshot(video)) for video in videos]


@router.get("/{video_id}", response_model=schemas.VideoResponse)
async def get_video(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    try:
        video = await service.get_owned_video(video_id=video_id, user_id=context.user_id)
    except VideoNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="video_not_found")
    except VideoForbidden:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not_video_owner")
    return schemas.VideoResponse(**video_snapshot(video))


@router.post("/{video_id}/upload", response_model=schemas.VideoResponse, summary="Upload and publish a video file")
async def upload_video(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    video: UploadFile = File(...),
) -> schemas.VideoResponse:
    upload = UploadAsset(stream=video, size=_declared_size(video), media_type=video.content_type or "")
    try:
        updated = await service.upload_video(video_id=video_id, user_id=context.user_id, upload=upload)
    except VideoNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="video_not_found")
    except VideoForbidden:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="not_video_owner")
    except VideoConflict:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="video_modified_concurrently")
    except PipelineFailure as exc:
        _raise_for_failure(exc)
    finally:
        await video.close()
    return schemas.VideoResponse(**video_snapshot(updated))


__all__ = ["router"]
