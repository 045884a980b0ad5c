from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path
from typing import BinaryIO, Optional

from rich.console import Console

from .core.config import get_settings
from .core.logging import configure_logging, level_from_name
from .core.storage import get_object_store
from .ingest.errors import PipelineFailure
from .ingest.orientation import OrientationClassifier, classify_ratio
from .ingest.pipeline import UploadAsset, build_pipeline

console = Console()


class _FileReader:
    def __init__(self, handle: BinaryIO):
        self.handle = handle

    async def read(self, size: int = -1) -> bytes:
        return self.handle.read(size)


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tubely ingest developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Probe a video's dimensions and print its orientation")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    ingest_parser = subparsers.add_parser("ingest", help="Remux, classify and publish a video to the configured store")
    ingest_parser.add_argument("--file", required=True, help="Path to the source media file")
    ingest_parser.add_argument("--content-type", default="video/mp4", help="Declared media type (default video/mp4)")
    ingest_parser.add_argument("--owner", default="cli", help="Owner identifier recorded in logs")
    ingest_parser.set_defaults(func=_cmd_ingest)
    return parser


def _resolve_media(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_probe(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _resolve_media(args.file)
    classifier = OrientationClassifier(settings.ffprobe_path, timeout_s=settings.tool_timeout_s)
    try:
        probe = asyncio.run(classifier.probe(media_path))
    except PipelineFailure as exc:
        console.print(f"[red]ffprobe failed:[/] {exc.detail}")
        sys.exit(3)
    console.print_json(
        data={
            "width": probe.width,
            "height": probe.height,
            "ratio": round(probe.ratio, 4),
            "classification": classify_ratio(probe).value,
        }
    )


def _cmd_ingest(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _resolve_media(args.file)
    pipeline = build_pipeline(settings, get_object_store(settings))

    async def _runner():
        with media_path.open("rb") as handle:
            upload = UploadAsset(stream=_FileReader(handle), size=media_path.stat().st_size, media_type=args.content_type)
            return await pipeline.ingest(upload, args.owner)

    try:
        published = asyncio.run(_runner())
    except PipelineFailure as exc:
        console.print(f"[red]{exc.kind} failure:[/] {exc.detail}")
        sys.exit(3)
    console.print_json(data={"key": published.key, "url": published.url})


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    results = {
        "ffmpeg": shutil.which(settings.ffmpeg_path) is not None,
        "ffprobe": shutil.which(settings.ffprobe_path) is not None,
    }

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg or set TUBELY_FFMPEG_PATH/TUBELY_FFPROBE_PATH.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
