from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from tubely.core.config import get_settings
from tubely.main import create_app
from tests.conftest import FFMPEG_INVALID_DATA, build_token, ffprobe_dimensions, remaining_files, write_tool

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42" + b"\x02" * 256


def _create_video(client: TestClient, headers: dict[str, str], title: str = "Snow") -> dict:
    resp = client.post("/v1/videos", json={"title": title, "description": "first hike"}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _upload(client: TestClient, video_id: str, headers: dict[str, str], *, content_type: str = "video/mp4"):
    return client.post(
        f"/v1/videos/{video_id}/upload",
        files={"video": ("clip.mp4", VIDEO_BYTES, content_type)},
        headers=headers,
    )


def test_v1_health_ok(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_requests_without_token_are_rejected(client):
    resp = client.get("/v1/videos")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "missing_authorization"


def test_token_without_subject_is_forbidden(client):
    headers = {"Authorization": f"Bearer {build_token(None)}"}
    resp = client.get("/v1/videos", headers=headers)
    assert resp.status_code == 403


def test_invalid_token_is_unauthorized(client):
    resp = client.get("/v1/videos", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "invalid_token"


def test_upload_publishes_landscape_video(client, user_headers, scratch_dir, published_dir):
    video = _create_video(client, user_headers)

    resp = _upload(client, video["id"], user_headers)

    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["video_url"].startswith("https://cdn.example.test/landscape/")
    assert payload["video_url"].endswith(".mp4")
    assert payload["version"] == video["version"] + 1

    key = payload["video_url"].removeprefix("https://cdn.example.test/")
    assert (published_dir / key).read_bytes() == VIDEO_BYTES
    assert remaining_files(scratch_dir) == []

    fetched = client.get(f"/v1/videos/{video['id']}", headers=user_headers).json()
    assert fetched["video_url"] == payload["video_url"]


def test_upload_publishes_portrait_video(client, user_headers, tools_dir):
    write_tool(tools_dir, "ffprobe", ffprobe_dimensions(1080, 1920))
    video = _create_video(client, user_headers)

    resp = _upload(client, video["id"], user_headers)

    assert resp.status_code == 200, resp.text
    assert "/portrait/" in resp.json()["video_url"]


def test_upload_by_non_owner_is_forbidden(client, user_headers, other_user_headers, scratch_dir):
    video = _create_video(client, user_headers)

    resp = _upload(client, video["id"], other_user_headers)

    assert resp.status_code == 403
    assert resp.json()["detail"] == "not_video_owner"
    assert remaining_files(scratch_dir) == []


def test_upload_unknown_video_is_not_found(client, user_headers):
    resp = _upload(client, "does-not-exist", user_headers)
    assert resp.status_code == 404


def test_upload_rejects_non_mp4(client, user_headers, scratch_dir):
    video = _create_video(client, user_headers)

    resp = _upload(client, video["id"], user_headers, content_type="video/quicktime")

    assert resp.status_code == 400
    assert resp.json()["detail"] == "media_type_not_allowed"
    assert remaining_files(scratch_dir) == []


def test_upload_transcode_failure_is_unprocessable(client, user_headers, tools_dir, scratch_dir, published_dir):
    write_tool(tools_dir, "ffmpeg", FFMPEG_INVALID_DATA)
    video = _create_video(client, user_headers)

    resp = _upload(client, video["id"], user_headers)

    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["kind"] == "transcode"
    assert detail["exit_code"] == 1
    assert "invalid data found" in detail["detail"]
    assert remaining_files(scratch_dir) == []
    assert remaining_files(published_dir) == []

    fetched = client.get(f"/v1/videos/{video['id']}", headers=user_headers).json()
    assert fetched["video_url"] is None


@pytest.fixture()
def small_limit_client(monkeypatch, configure_environment):
    monkeypatch.setenv("TUBELY_MAX_UPLOAD_SIZE_BYTES", "64")
    get_settings.cache_clear()
    with TestClient(create_app()) as client:
        yield client


def test_upload_over_limit_is_rejected(small_limit_client, user_headers, scratch_dir):
    video = _create_video(small_limit_client, user_headers)

    resp = _upload(small_limit_client, video["id"], user_headers)

    assert resp.status_code == 413
    assert resp.json()["detail"] == "upload_too_large"
    assert remaining_files(scratch_dir) == []


def test_get_video_of_other_user_is_forbidden(client, user_headers, other_user_headers):
    video = _create_video(client, user_headers)
    resp = client.get(f"/v1/videos/{video['id']}", headers=other_user_headers)
    assert resp.status_code == 403


def test_list_videos_returns_only_own(client, user_headers, other_user_headers):
    _create_video(client, user_headers, "mine")
    _create_video(client, other_user_headers, "theirs")

    resp = client.get("/v1/videos", headers=user_headers)

    assert resp.status_code == 200
    assert [item["title"] for item in resp.json()] == ["mine"]


def test_admin_env_check_requires_scope(client, user_headers, admin_headers):
    assert client.get("/v1/admin/env-check", headers=user_headers).status_code == 403

    resp = client.get("/v1/admin/env-check", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"ffmpeg": True, "ffprobe": True}


def test_dev_token_disabled_outside_development(client):
    resp = client.post("/v1/admin/dev-token", json={"user_id": "user-1"})
    assert resp.status_code == 403
    assert resp.json()["detail"] == "dev_token_disabled"
