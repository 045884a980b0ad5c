from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from tubely.core.logging import get_logger

from .errors import TranscodeFailure
from .process import ToolError, run_tool

PROCESSED_SUFFIX = ".processed"


class StreamNormalizer:
    """Remux a container for fast-start playback without re-encoding.

    The moov atom is moved to the front of the file, audio/video streams are
    copied as-is and the input's global metadata is preserved.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", *, timeout_s: Optional[float] = None):
        self.ffmpeg_path = ffmpeg_path
        self.timeout_s = timeout_s
        self.logger = get_logger(component="stream_normalizer")

    @staticmethod
    def output_path_for(input_path: Path) -> Path:
        return Path(f"{input_path}{PROCESSED_SUFFIX}")

    def build_command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self.ffmpeg_path,
            "-i",
            str(input_path),
            "-movflags",
            "faststart",
            "-map_metadata",
            "0",
            "-codec",
            "copy",
            "-f",
            "mp4",
            str(output_path),
        ]

    async def normalize(self, input_path: Path) -> Path:
        output_path = self.output_path_for(input_path)
        command = self.build_command(input_path, output_path)
        try:
            result = await run_tool(command, timeout_s=self.timeout_s)
        except ToolError as exc:
            output_path.unlink(missing_ok=True)
            raise TranscodeFailure(str(exc)) from exc
        except asyncio.CancelledError:
            output_path.unlink(missing_ok=True)
            raise

        if not result.ok:
            # A failed remux can leave a truncated output behind.
            output_path.unlink(missing_ok=True)
            raise TranscodeFailure(
                f"ffmpeg failed with exit code {result.returncode}: {result.stderr.strip()}",
                exit_code=result.returncode,
                stderr=result.stderr,
            )

        self.logger.info("stream_normalized", input=str(input_path), output=str(output_path))
        return output_path


__all__ = ["StreamNormalizer", "PROCESSED_SUFFIX"]
