"""
Integration tests for the Videos API.

Tests create, list, get and delete, plus the auth and ownership rules
every video route shares. Uploads live in test_uploads.py.
"""

import uuid
from pathlib import Path

import pytest
from httpx import AsyncClient

from app.config import settings
from app.database import AsyncSessionLocal
from app.models import Video


@pytest.mark.asyncio
async def test_create_video(client: AsyncClient, test_user, auth_headers):
    """POST /api/videos creates a draft owned by the caller."""
    response = await client.post(
        "/api/videos",
        json={"title": "My first video", "description": "Hello"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "My first video"
    assert data["description"] == "Hello"
    assert data["user_id"] == str(test_user.id)
    assert data["thumbnail_url"] is None
    assert data["video_url"] is None


@pytest.mark.asyncio
async def test_create_video_requires_jwt(client: AsyncClient):
    response = await client.post("/api/videos", json={"title": "No auth"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Couldn't find JWT"


@pytest.mark.asyncio
async def test_create_video_rejects_bad_jwt(client: AsyncClient):
    response = await client.post(
        "/api/videos",
        json={"title": "Bad auth"},
        headers={"Authorization": "Bearer not.a.jwt"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Couldn't validate JWT"


@pytest.mark.asyncio
async def test_list_videos_only_returns_own(
    client: AsyncClient, test_video, auth_headers, other_auth_headers
):
    """GET /api/videos is scoped to the caller."""
    mine = await client.get("/api/videos", headers=auth_headers)
    theirs = await client.get("/api/videos", headers=other_auth_headers)

    assert mine.status_code == 200
    assert [v["id"] for v in mine.json()] == [str(test_video.id)]
    assert theirs.json() == []


@pytest.mark.asyncio
async def test_list_videos_signs_video_urls(client: AsyncClient, test_video, auth_headers):
    """Stored "<bucket>,<key>" references come back as presigned URLs."""
    async with AsyncSessionLocal() as session:
        video = await session.get(Video, test_video.id)
        video.video_url = "test-bucket,landscape/abc.mp4"
        await session.commit()

    response = await client.get("/api/videos", headers=auth_headers)

    assert response.status_code == 200
    url = response.json()[0]["video_url"]
    assert url.startswith("https://test-bucket.s3.test/landscape/abc.mp4")
    assert "X-Amz-Expires=300" in url


@pytest.mark.asyncio
async def test_get_video_success(client: AsyncClient, test_video, auth_headers):
    response = await client.get(f"/api/videos/{test_video.id}", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(test_video.id)
    assert data["title"] == "Boots on the ground"


@pytest.mark.asyncio
async def test_get_video_not_found(client: AsyncClient, auth_headers):
    response = await client.get(f"/api/videos/{uuid.uuid4()}", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_video_invalid_id(client: AsyncClient, auth_headers):
    response = await client.get("/api/videos/not-a-uuid", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid ID"


@pytest.mark.asyncio
async def test_get_video_not_owner(client: AsyncClient, test_video, other_auth_headers):
    response = await client.get(
        f"/api/videos/{test_video.id}", headers=other_auth_headers
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_delete_video(client: AsyncClient, test_video, auth_headers, fake_s3):
    """DELETE /api/videos/{id} removes the record and its bucket object."""
    fake_s3.objects[("test-bucket", "portrait/abc.mp4")] = {"body": b"x"}
    async with AsyncSessionLocal() as session:
        video = await session.get(Video, test_video.id)
        video.video_url = "test-bucket,portrait/abc.mp4"
        await session.commit()

    response = await client.delete(f"/api/videos/{test_video.id}", headers=auth_headers)

    assert response.status_code == 204
    assert ("test-bucket", "portrait/abc.mp4") not in fake_s3.objects

    follow_up = await client.get(f"/api/videos/{test_video.id}", headers=auth_headers)
    assert follow_up.status_code == 404


@pytest.mark.asyncio
async def test_delete_video_not_owner(client: AsyncClient, test_video, other_auth_headers):
    response = await client.delete(
        f"/api/videos/{test_video.id}", headers=other_auth_headers
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_delete_video_removes_thumbnail_file(
    client: AsyncClient, test_video, auth_headers
):
    """A disk-stored thumbnail goes away with its record."""
    upload = await client.post(
        f"/api/thumbnail_upload/{test_video.id}",
        files={"thumbnail": ("thumb.png", b"\x89PNG\r\n\x1a\n", "image/png")},
        headers=auth_headers,
    )
    assert upload.status_code == 200
    name = upload.json()["thumbnail_url"].rsplit("/", 1)[1]
    assert (Path(settings.ASSETS_ROOT) / name).exists()

    response = await client.delete(f"/api/videos/{test_video.id}", headers=auth_headers)

    assert response.status_code == 204
    assert not (Path(settings.ASSETS_ROOT) / name).exists()


@pytest.mark.asyncio
async def test_get_video_presign_failure(
    client: AsyncClient, test_video, auth_headers, fake_s3
):
    async with AsyncSessionLocal() as session:
        video = await session.get(Video, test_video.id)
        video.video_url = "test-bucket,landscape/abc.mp4"
        await session.commit()
    fake_s3.fail_presign = True

    response = await client.get(f"/api/videos/{test_video.id}", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["detail"] == "Couldn't generate presigned URL"


@pytest.mark.asyncio
async def test_admin_reset_forbidden_outside_dev(client: AsyncClient, monkeypatch):
    """POST /admin/reset refuses to run unless PLATFORM is dev."""
    monkeypatch.setattr(settings, "PLATFORM", "production")

    response = await client.post("/admin/reset")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_reset_wipes_users_and_videos(client: AsyncClient, test_video):
    """POST /admin/reset in dev deletes users and cascades to their videos."""
    response = await client.post("/admin/reset")

    assert response.status_code == 200
    async with AsyncSessionLocal() as session:
        assert await session.get(Video, test_video.id) is None
