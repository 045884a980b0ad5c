"""Video ingest pipeline.

Runs one upload through validate, stage, normalize, classify and publish.
Every temp artifact created on the way is released before ``ingest``
returns or raises, and a step failure surfaces unchanged after cleanup.
"""

from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union
from uuid import uuid4

import structlog

from tubely.core.config import Settings
from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStore

from .errors import PipelineFailure, ValidationFailure
from .normalizer import StreamNormalizer
from .orientation import OrientationClassifier
from .publisher import ObjectPublisher, PublishedAsset
from .tempfiles import AsyncReader, TempArtifactManager

DEFAULT_MAX_UPLOAD_SIZE = 1 << 30


class PipelineState(str, enum.Enum):
    validating = "validating"
    staged = "staged"
    normalizing = "normalizing"
    classifying = "classifying"
    publishing = "publishing"
    cleanup = "cleanup"
    done = "done"
    failed = "failed"


@dataclass(slots=True)
class UploadAsset:
    stream: Union[bytes, AsyncReader]
    size: int
    media_type: str


def generate_artifact_name(extension: str = ".mp4") -> str:
    """32 random bytes, hex encoded; never derived from client input."""
    return f"{secrets.token_hex(32)}{extension}"


class PipelineOrchestrator:
    def __init__(
        self,
        temp_factory: Callable[[], TempArtifactManager],
        normalizer: StreamNormalizer,
        classifier: OrientationClassifier,
        publisher: ObjectPublisher,
        *,
        accepted_media_type: str = "video/mp4",
        max_upload_size_bytes: int = DEFAULT_MAX_UPLOAD_SIZE,
    ):
        self.temp_factory = temp_factory
        self.normalizer = normalizer
        self.classifier = classifier
        self.publisher = publisher
        self.accepted_media_type = accepted_media_type
        self.max_upload_size_bytes = max_upload_size_bytes

    def validate(self, upload: UploadAsset) -> None:
        if upload.size > self.max_upload_size_bytes:
            raise ValidationFailure(
                f"Video file is too large ({upload.size} > {self.max_upload_size_bytes} bytes)",
                reason="upload_too_large",
            )
        if upload.media_type != self.accepted_media_type:
            raise ValidationFailure(
                f"Video must be {self.accepted_media_type}, got {upload.media_type or 'unknown'}",
                reason="media_type_not_allowed",
            )

    async def ingest(self, upload: UploadAsset, owner_id: str) -> PublishedAsset:
        logger = get_logger(component="pipeline", run_id=uuid4().hex, owner_id=owner_id)
        state = PipelineState.validating

        def advance(next_state: PipelineState) -> None:
            nonlocal state
            state = next_state
            logger.info("pipeline_state", state=state.value)

        advance(PipelineState.validating)
        try:
            self.validate(upload)
            published = await self._run(upload, logger, advance)
        except PipelineFailure as exc:
            logger.warning("pipeline_failed", failed_in=state.value, **exc.as_dict())
            advance(PipelineState.failed)
            raise
        except Exception:
            logger.exception("pipeline_crashed", failed_in=state.value)
            advance(PipelineState.failed)
            raise

        advance(PipelineState.done)
        return published

    async def _run(
        self,
        upload: UploadAsset,
        logger: structlog.BoundLogger,
        advance: Callable[[PipelineState], None],
    ) -> PublishedAsset:
        file_name = generate_artifact_name()
        manager = self.temp_factory()
        try:
            with manager.scope():
                original = manager.acquire(file_name)
                await manager.write(original, upload.stream, limit=upload.size)
                advance(PipelineState.staged)

                advance(PipelineState.normalizing)
                # Tracked before ffmpeg starts so a partial output is released on any exit.
                processed = manager.adopt(self.normalizer.output_path_for(original.path))
                await self.normalizer.normalize(original.path)

                advance(PipelineState.classifying)
                classification = await self.classifier.classify(processed.path)

                advance(PipelineState.publishing)
                return await self.publisher.publish(
                    processed.path,
                    upload.media_type,
                    classification.value,
                    file_name=file_name,
                )
        finally:
            logger.info(
                "pipeline_cleanup",
                state=PipelineState.cleanup.value,
                acquired=manager.acquired,
                released=manager.released,
            )


def build_pipeline(settings: Settings, store: ObjectStore) -> PipelineOrchestrator:
    scratch_dir = Path(settings.scratch_dir)
    return PipelineOrchestrator(
        temp_factory=lambda: TempArtifactManager(scratch_dir),
        normalizer=StreamNormalizer(settings.ffmpeg_path, timeout_s=settings.tool_timeout_s),
        classifier=OrientationClassifier(settings.ffprobe_path, timeout_s=settings.tool_timeout_s),
        publisher=ObjectPublisher(store, settings.resolved_public_base_url),
        accepted_media_type=settings.accepted_media_type,
        max_upload_size_bytes=settings.max_upload_size_bytes,
    )


__all__ = [
    "PipelineOrchestrator",
    "PipelineState",
    "UploadAsset",
    "build_pipeline",
    "generate_artifact_name",
]
