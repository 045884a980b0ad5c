from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from tubely.core.logging import get_logger

from .errors import ProbeParseFailure
from .process import ToolError, run_tool

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.1


class Classification(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"


@dataclass(slots=True, frozen=True)
class ProbeResult:
    width: int
    height: int

    @property
    def ratio(self) -> float:
        return self.width / self.height


def classify_ratio(probe: ProbeResult) -> Classification:
    """Map frame dimensions to an orientation.

    Near-16:9 and near-9:16 frames are matched first; anything else (4:3,
    1:1, ultra-wide) falls back to comparing width against height, with
    square frames counted as portrait.
    """
    ratio = probe.ratio
    if abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return Classification.landscape
    if abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return Classification.portrait
    if ratio > 1:
        return Classification.landscape
    return Classification.portrait


def _dimension(stream: dict[str, Any], field: str) -> int:
    value = stream.get(field)
    # bool is an int subclass; ffprobe never reports one.
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ProbeParseFailure(f"Could not get video dimensions: missing {field}")
    return value


def parse_probe_output(raw: str) -> ProbeResult:
    """Parse ``ffprobe -show_entries stream=width,height -of json`` output."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ProbeParseFailure(f"ffprobe returned invalid JSON: {exc}") from exc

    streams = data.get("streams") if isinstance(data, dict) else None
    if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
        raise ProbeParseFailure("Could not get video dimensions: no video stream")

    stream = streams[0]
    return ProbeResult(width=_dimension(stream, "width"), height=_dimension(stream, "height"))


class OrientationClassifier:
    def __init__(self, ffprobe_path: str = "ffprobe", *, timeout_s: Optional[float] = None):
        self.ffprobe_path = ffprobe_path
        self.timeout_s = timeout_s
        self.logger = get_logger(component="orientation_classifier")

    def build_command(self, path: Path) -> list[str]:
        return [
            self.ffprobe_path,
            "-v",
            "error",
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
            "-of",
            "json",
            str(path),
        ]

    async def probe(self, path: Path) -> ProbeResult:
        try:
            result = await run_tool(self.build_command(path), timeout_s=self.timeout_s)
        except ToolError as exc:
            raise ProbeParseFailure(str(exc)) from exc
        if not result.ok:
            raise ProbeParseFailure(
                f"ffprobe failed with exit code {result.returncode}: {result.stderr.strip()}",
                exit_code=result.returncode,
                stderr=result.stderr,
            )
        return parse_probe_output(result.stdout)

    async def classify(self, path: Path) -> Classification:
        probe = await self.probe(path)
        classification = classify_ratio(probe)
        self.logger.info(
            "orientation_classified",
            path=str(path),
            width=probe.width,
            height=probe.height,
            ratio=round(probe.ratio, 3),
            classification=classification.value,
        )
        return classification


__all__ = [
    "Classification",
    "ProbeResult",
    "OrientationClassifier",
    "classify_ratio",
    "parse_probe_output",
    "LANDSCAPE_RATIO",
    "PORTRAIT_RATIO",
    "RATIO_TOLERANCE",
]
