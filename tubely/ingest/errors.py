"""Failure taxonomy for the ingest pipeline.

Each failure carries a ``kind`` that callers can switch on and a ``detail``
string that is surfaced unchanged (tool stderr, storage error text).
"""

from __future__ import annotations

from typing import Optional


class PipelineFailure(Exception):
    kind = "pipeline"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def as_dict(self) -> dict[str, object]:
        return {"kind": self.kind, "detail": self.detail}


class ValidationFailure(PipelineFailure):
    """Rejected before anything touches the disk (media type, size ceiling)."""

    kind = "validation"

    def __init__(self, detail: str, *, reason: str):
        super().__init__(detail)
        self.reason = reason

    def as_dict(self) -> dict[str, object]:
        return {**super().as_dict(), "reason": self.reason}


class TranscodeFailure(PipelineFailure):
    kind = "transcode"

    def __init__(self, detail: str, *, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(detail)
        self.exit_code = exit_code
        self.stderr = stderr

    def as_dict(self) -> dict[str, object]:
        return {**super().as_dict(), "exit_code": self.exit_code}


class ProbeParseFailure(PipelineFailure):
    kind = "probe"

    def __init__(self, detail: str, *, exit_code: Optional[int] = None, stderr: str = ""):
        super().__init__(detail)
        self.exit_code = exit_code
        self.stderr = stderr


class PublishFailure(PipelineFailure):
    kind = "publish"

    def __init__(self, detail: str, *, key: Optional[str] = None):
        super().__init__(detail)
        self.key = key


__all__ = [
    "PipelineFailure",
    "ValidationFailure",
    "TranscodeFailure",
    "ProbeParseFailure",
    "PublishFailure",
]
