from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from tubely.core.logging import get_logger
from tubely.core.storage import ObjectStore

from .errors import PublishFailure


@dataclass(slots=True, frozen=True)
class PublishedAsset:
    key: str
    url: str


class ObjectPublisher:
    """Uploads a processed artifact and returns its public location."""

    def __init__(self, store: ObjectStore, public_base_url: str):
        self.store = store
        self.public_base_url = public_base_url.rstrip("/")
        self.logger = get_logger(component="object_publisher")

    @staticmethod
    def build_key(key_prefix: str, file_name: str) -> str:
        return f"{key_prefix}/{file_name}"

    def build_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    async def publish(
        self,
        path: Path,
        media_type: str,
        key_prefix: str,
        *,
        file_name: Optional[str] = None,
    ) -> PublishedAsset:
        key = self.build_key(key_prefix, file_name or path.name)
        try:
            stored = await asyncio.to_thread(self.store.put_file, key, path, content_type=media_type)
        except (BotoCoreError, ClientError, Boto3Error, OSError) as exc:
            self.logger.error("publish_failed", key=key, error=str(exc))
            raise PublishFailure(f"failed to upload {key}: {exc}", key=key) from exc

        asset = PublishedAsset(key=key, url=self.build_url(key))
        self.logger.info("video_published", key=key, url=asset.url, size_bytes=stored.size_bytes)
        return asset


__all__ = ["ObjectPublisher", "PublishedAsset"]
