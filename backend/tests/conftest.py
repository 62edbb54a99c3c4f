"""
Test fixtures shared across all integration tests.

Architecture:
- Settings are read from the environment at import time, so we point
  DATABASE_URL and ASSETS_ROOT at a throwaway directory BEFORE importing
  anything from the app.
- pyproject.toml sets the asyncio loop scope to "session" so all tests
  share ONE event loop with the app's engine.
- Seed data is committed via the app's own AsyncSessionLocal.
- The HTTP test client uses the real FastAPI app. Only the S3 client is
  replaced (via dependency_overrides) with an in-memory fake.
- Each test gets seed data with unique UUIDs/emails to avoid collisions.
"""

import os
import tempfile
import uuid
from datetime import timedelta

_tmp_dir = tempfile.mkdtemp(prefix="tubely-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_tmp_dir}/test.db"
os.environ["ASSETS_ROOT"] = os.path.join(_tmp_dir, "assets")
os.environ["BASE_URL"] = "http://test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["THUMBNAIL_STORAGE"] = "disk"
os.environ["PLATFORM"] = "dev"
os.environ["S3_BUCKET"] = "test-bucket"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from botocore.exceptions import ClientError  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.config import settings  # noqa: E402
from app.database import AsyncSessionLocal, Base, engine  # noqa: E402
from app.models import User, Video  # noqa: E402
from app.services.auth import hash_password, make_jwt  # noqa: E402
from app.services.storage import S3StorageService, get_video_storage  # noqa: E402
from app.main import app  # noqa: E402


class FakeS3Client:
    """Just enough of boto3's S3 client for the storage service.

    Flip fail_put / fail_presign to make the matching call raise the
    ClientError boto3 would.
    """

    def __init__(self):
        self.objects = {}
        self.fail_put = False
        self.fail_presign = False

    def put_object(self, Bucket, Key, Body, ContentType=None):
        if self.fail_put:
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "boom"}}, "PutObject"
            )
        self.objects[(Bucket, Key)] = {"body": Body.read(), "content_type": ContentType}
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)
        return {}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        if self.fail_presign:
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "no"}}, "GetObject"
            )
        return (
            f"https://{Params['Bucket']}.s3.test/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}"
        )


@pytest_asyncio.fixture(scope="session")
async def setup_db():
    """Create all tables once before the test session."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def video_storage(fake_s3):
    return S3StorageService(settings.S3_BUCKET, client=fake_s3)


@pytest_asyncio.fixture
async def client(setup_db, video_storage):
    """Async HTTP test client backed by the real app and a fake bucket."""
    app.dependency_overrides[get_video_storage] = lambda: video_storage
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# --- Seed data fixtures ---

async def _create_user(password: str = "password123") -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"user_{uuid.uuid4().hex[:8]}@example.com",
        password_hash=hash_password(password),
    )
    async with AsyncSessionLocal() as session:
        session.add(user)
        await session.commit()
        await session.refresh(user)
    return user


def _auth_headers(user: User) -> dict:
    token = make_jwt(user.id, settings.JWT_SECRET, timedelta(hours=1))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(setup_db):
    """A user whose password is 'password123'."""
    return await _create_user()


@pytest_asyncio.fixture
async def other_user(setup_db):
    return await _create_user()


@pytest.fixture
def auth_headers(test_user):
    return _auth_headers(test_user)


@pytest.fixture
def other_auth_headers(other_user):
    return _auth_headers(other_user)


@pytest_asyncio.fixture
async def test_video(test_user):
    """A draft video record owned by test_user (no files attached)."""
    video = Video(
        id=uuid.uuid4(),
        title="Boots on the ground",
        description="A test video",
        user_id=test_user.id,
    )
    async with AsyncSessionLocal() as session:
        session.add(video)
        await session.commit()
        await session.refresh(video)
    return video


@pytest.fixture
def fake_media(monkeypatch):
    """Replace ffprobe/ffmpeg with stand-ins.

    The returned dict controls the aspect ratio reported and records the
    paths the pipeline handed over, so tests can check cleanup.
    """
    state = {"aspect_ratio": "16:9", "inspected": [], "processed": []}

    def fake_aspect_ratio(path):
        state["inspected"].append(path)
        return state["aspect_ratio"]

    def fake_fast_start(path):
        out = f"{path}.processing"
        with open(path, "rb") as src, open(out, "wb") as dst:
            dst.write(b"faststart:" + src.read())
        state["processed"].append(out)
        return out

    monkeypatch.setattr("app.routers.videos.get_video_aspect_ratio", fake_aspect_ratio)
    monkeypatch.setattr("app.routers.videos.process_video_for_fast_start", fake_fast_start)
    return state
