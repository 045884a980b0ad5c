"""Scoped lifecycle for the temporary files produced by one pipeline run."""

from __future__ import annotations

import asyncio
import enum
import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union

from tubely.core.logging import get_logger

from .errors import ValidationFailure

CHUNK_SIZE = 1024 * 1024


class AsyncReader(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class ArtifactState(str, enum.Enum):
    created = "created"
    in_use = "in_use"
    released = "released"


@dataclass(slots=True, eq=False)
class TempArtifact:
    path: Path
    state: ArtifactState = ArtifactState.created


class TempArtifactManager:
    """Creates temp artifacts under a scratch directory and releases them all on scope exit.

    One manager belongs to exactly one pipeline run. ``release`` never raises:
    deletion problems are logged as ``temp_artifact_cleanup_failed`` warnings
    so they cannot mask the run's real outcome.
    """

    def __init__(self, scratch_dir: Path):
        self.scratch_dir = Path(scratch_dir)
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        self._artifacts: list[TempArtifact] = []
        self.acquired = 0
        self.released = 0
        self.logger = get_logger(component="temp_artifacts")

    def acquire(self, suggested_name: str) -> TempArtifact:
        name = Path(suggested_name).name or "artifact"
        path = self.scratch_dir / name
        while True:
            try:
                path.touch(exist_ok=False)
                break
            except FileExistsError:
                stem, suffix = Path(name).stem, Path(name).suffix
                path = self.scratch_dir / f"{stem}-{secrets.token_hex(4)}{suffix}"
        return self._track(TempArtifact(path=path))

    def adopt(self, path: Path) -> TempArtifact:
        """Take ownership of a file another component created inside this run."""
        return self._track(TempArtifact(path=Path(path), state=ArtifactState.in_use))

    async def write(
        self,
        artifact: TempArtifact,
        data: Union[bytes, AsyncReader],
        *,
        limit: Optional[int] = None,
    ) -> int:
        """Stream ``data`` into ``artifact``.

        With ``limit`` set, a source that yields more bytes than that raises
        ``ValidationFailure`` before the excess reaches the disk.
        """
        if artifact.state is ArtifactState.released:
            raise RuntimeError(f"cannot write to released artifact {artifact.path}")
        written = 0
        handle = await asyncio.to_thread(artifact.path.open, "wb")
        try:
            if isinstance(data, (bytes, bytearray, memoryview)):
                self._check_limit(len(data), limit)
                written = await asyncio.to_thread(handle.write, data)
            else:
                while chunk := await data.read(CHUNK_SIZE):
                    self._check_limit(written + len(chunk), limit)
                    written += await asyncio.to_thread(handle.write, chunk)
        finally:
            await asyncio.to_thread(handle.close)
        artifact.state = ArtifactState.in_use
        self.logger.debug("temp_artifact_written", path=str(artifact.path), size_bytes=written)
        return written

    @staticmethod
    def _check_limit(size: int, limit: Optional[int]) -> None:
        if limit is not None and size > limit:
            raise ValidationFailure(
                f"Upload sent more than its declared {limit} bytes",
                reason="upload_too_large",
            )

    def release(self, artifact: TempArtifact) -> None:
        if artifact.state is ArtifactState.released:
            return
        try:
            artifact.path.unlink(missing_ok=True)
        except OSError as exc:
            self.logger.warning("temp_artifact_cleanup_failed", path=str(artifact.path), error=str(exc))
        artifact.state = ArtifactState.released
        self.released += 1
        self.logger.debug("temp_artifact_released", path=str(artifact.path))

    def release_all(self) -> None:
        for artifact in reversed(self._artifacts):
            self.release(artifact)

    @contextmanager
    def scope(self) -> Iterator["TempArtifactManager"]:
        try:
            yield self
        finally:
            self.release_all()

    def _track(self, artifact: TempArtifact) -> TempArtifact:
        self._artifacts.append(artifact)
        self.acquired += 1
        self.logger.debug("temp_artifact_acquired", path=str(artifact.path), state=artifact.state.value)
        return artifact


__all__ = ["ArtifactState", "AsyncReader", "TempArtifact", "TempArtifactManager"]
