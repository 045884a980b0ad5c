"""Ingest pipeline: temp artifacts, remux, orientation probe, publish."""

from tubely.ingest.errors import (
    PipelineFailure,
    ProbeParseFailure,
    PublishFailure,
    TranscodeFailure,
    ValidationFailure,
)
from tubely.ingest.normalizer import StreamNormalizer
from tubely.ingest.orientation import Classification, OrientationClassifier, ProbeResult, classify_ratio
from tubely.ingest.pipeline import PipelineOrchestrator, PipelineState, UploadAsset, build_pipeline
from tubely.ingest.publisher import ObjectPublisher, PublishedAsset
from tubely.ingest.tempfiles import ArtifactState, TempArtifact, TempArtifactManager

__all__ = [
    "ArtifactState",
    "Classification",
    "ObjectPublisher",
    "OrientationClassifier",
    "PipelineFailure",
    "PipelineOrchestrator",
    "PipelineState",
    "ProbeParseFailure",
    "ProbeResult",
    "PublishFailure",
    "PublishedAsset",
    "StreamNormalizer",
    "TempArtifact",
    "TempArtifactManager",
    "TranscodeFailure",
    "UploadAsset",
    "ValidationFailure",
    "build_pipeline",
    "classify_ratio",
]
