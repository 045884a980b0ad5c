import asyncio
import stat
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from tubely.core.config import get_settings
from tubely.core.db import Base, create_engine
from tubely.main import create_app

import tubely.db.models  # noqa: F401 - register tables on Base.metadata

JWT_SECRET = "test-secret"
JWT_ISSUER = "tubely-test"
JWT_AUDIENCE = "tubely"

FFMPEG_COPY = """#!/bin/sh
for last; do :; done
cp "$2" "$last"
"""

FFMPEG_INVALID_DATA = """#!/bin/sh
for last; do :; done
printf 'partial' > "$last"
echo "invalid data found when processing input" >&2
exit 1
"""

FFMPEG_HANG = """#!/bin/sh
exec sleep 30
"""

FFMPEG_PARTIAL_THEN_HANG = """#!/bin/sh
for last; do :; done
printf 'partial' > "$last"
exec sleep 30
"""


def ffprobe_script(payload: str, *, exit_code: int = 0, stderr: str = "") -> str:
    lines = ["#!/bin/sh", "cat <<'JSON'", payload, "JSON"]
    if stderr:
        lines.append(f"echo '{stderr}' >&2")
    lines.append(f"exit {exit_code}")
    return "\n".join(lines) + "\n"


def ffprobe_dimensions(width: int, height: int) -> str:
    return ffprobe_script(f'{{"programs": [], "streams": [{{"width": {width}, "height": {height}}}]}}')


def write_tool(directory: Path, name: str, script: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Tubely environment bootstrap fixture for tests that manage their own settings",
    )


@pytest.fixture()
def tools_dir(tmp_path) -> Path:
    return tmp_path / "bin"


@pytest.fixture()
def scratch_dir(tmp_path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture()
def published_dir(tmp_path) -> Path:
    return tmp_path / "published"


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path, tools_dir, scratch_dir, published_dir):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return

    db_path = tmp_path / "tubely_test.db"
    ffmpeg = write_tool(tools_dir, "ffmpeg", FFMPEG_COPY)
    ffprobe = write_tool(tools_dir, "ffprobe", ffprobe_dimensions(1920, 1080))

    monkeypatch.setenv("TUBELY_ENV", "test")
    monkeypatch.setenv("TUBELY_LOG_LEVEL", "debug")
    monkeypatch.setenv("TUBELY_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("TUBELY_SCRATCH_DIR", str(scratch_dir))
    monkeypatch.setenv("TUBELY_STORAGE_BACKEND", "local")
    monkeypatch.setenv("TUBELY_LOCAL_STORAGE_BASE_PATH", str(published_dir))
    monkeypatch.setenv("TUBELY_PUBLIC_BASE_URL", "https://cdn.example.test")
    monkeypatch.setenv("TUBELY_FFMPEG_PATH", str(ffmpeg))
    monkeypatch.setenv("TUBELY_FFPROBE_PATH", str(ffprobe))
    monkeypatch.setenv("TUBELY_TOOL_TIMEOUT_S", "10")
    monkeypatch.setenv("TUBELY_JWT_SECRET", JWT_SECRET)
    monkeypatch.setenv("TUBELY_JWT_ISSUER", JWT_ISSUER)
    monkeypatch.setenv("TUBELY_JWT_AUDIENCE", JWT_AUDIENCE)

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    async def _setup() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_setup())

    yield

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


def build_token(user_id: str | None, *, scopes: list[str] | None = None) -> str:
    payload: dict[str, object] = {"iss": JWT_ISSUER, "aud": JWT_AUDIENCE}
    if user_id:
        payload["sub"] = user_id
    if scopes:
        payload["scopes"] = scopes
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture()
def user_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-1')}"}


@pytest.fixture()
def other_user_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('user-2')}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {build_token('admin-1', scopes=['admin'])}"}


def remaining_files(directory: Path) -> list[Path]:
    if not directory.exists():
        return []
    return [path for path in directory.rglob("*") if path.is_file()]
