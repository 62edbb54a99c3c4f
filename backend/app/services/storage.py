"""
File storage.

Two backends, one per kind of asset:

- LocalStorageService: thumbnails written to ASSETS_ROOT on local disk and
  served back by the app under /assets/.
- S3StorageService: videos written to an S3 (or S3-compatible) bucket.
  The database only ever holds "<bucket>,<key>"; readers get a presigned
  GET URL that expires after PRESIGNED_URL_EXPIRE_SECONDS.

Usage:
    storage = get_storage_service()
    url = await storage.save_bytes(data, "image/png")

    videos = get_video_storage()
    videos.put_file(path, "landscape/abc.mp4", "video/mp4")
    signed = videos.sign_video(video)
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.models import Video
from app.schemas.videos import VideoResponse

logger = logging.getLogger(__name__)

ASSETS_URL_PREFIX = "/assets/"


class StorageError(Exception):
    """Raised when a file can't be written, read, signed or deleted."""


def media_type_to_ext(media_type: str) -> str:
    """'image/png' -> '.png'. Anything malformed becomes '.bin'."""
    parts = media_type.split("/")
    if len(parts) != 2 or not parts[1]:
        return ".bin"
    return f".{parts[1]}"


def get_asset_path(media_type: str) -> str:
    """Random, URL-safe file name with an extension matching the media type."""
    return f"{secrets.token_urlsafe(32)}{media_type_to_ext(media_type)}"


def parse_media_type(content_type: Optional[str]) -> str:
    """Strip parameters from a Content-Type value ('video/mp4; codecs=x' -> 'video/mp4').

    Raises:
        ValueError: If the value is empty or isn't a type/subtype pair.
    """
    if not content_type:
        raise ValueError("missing media type")
    media_type = content_type.split(";", 1)[0].strip().lower()
    main, _, sub = media_type.partition("/")
    if not main or not sub or "/" in sub or " " in media_type:
        raise ValueError(f"malformed media type: {content_type!r}")
    return media_type


class LocalStorageService:
    """Saves thumbnails to a local directory.

    Files are named with get_asset_path() so names can't collide or be
    guessed, and served back via the /assets static mount.
    """

    def __init__(self, base_path: str = "assets", base_url: str = ""):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    async def save_bytes(self, data: bytes, media_type: str) -> str:
        """Write data to a fresh file and return its public URL."""
        name = get_asset_path(media_type)
        file_path = self.base_path / name
        try:
            file_path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"could not write {file_path}: {e}") from e

        logger.info(f"Saved asset {name} ({len(data)} bytes)")
        return self.get_asset_url(name)

    def get_asset_url(self, name: str) -> str:
        return f"{self.base_url}{ASSETS_URL_PREFIX}{name}"

    def path_for_url(self, url: str) -> Optional[Path]:
        """Map one of our asset URLs back to a file path.

        Returns None for anything we didn't produce (data: URLs, other hosts).
        """
        prefix = f"{self.base_url}{ASSETS_URL_PREFIX}"
        if not url.startswith(prefix):
            return None
        name = url[len(prefix):]
        # Names come from token_urlsafe, so no separators are legitimate
        if not name or "/" in name or "\\" in name or name.startswith("."):
            return None
        return self.base_path / name

    async def delete_url(self, url: str) -> bool:
        """Delete the file behind an asset URL, if it's one of ours."""
        file_path = self.path_for_url(url)
        if file_path is None or not file_path.exists():
            return False
        file_path.unlink()
        logger.info(f"Deleted asset {file_path.name}")
        return True


class S3StorageService:
    """Stores videos in an S3 bucket and signs read URLs for them.

    All methods are synchronous (boto3 is); call them from async code
    with asyncio.to_thread().
    """

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self.client = client or _make_s3_client()

    def bucket_key(self, key: str) -> str:
        """The reference we persist in videos.video_url."""
        return f"{self.bucket},{key}"

    def put_file(self, file_path: str, key: str, content_type: str) -> None:
        """Upload a local file to the bucket."""
        try:
            with open(file_path, "rb") as body:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                )
        except (ClientError, BotoCoreError, OSError) as e:
            logger.error(f"Failed to upload {self.bucket}/{key}: {e}")
            raise StorageError(f"upload failed: {e}") from e

        logger.info(f"Uploaded {self.bucket}/{key}")

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {bucket}/{key}: {e}")
            raise StorageError(f"delete failed: {e}") from e

        logger.info(f"Deleted {bucket}/{key}")

    def generate_presigned_url(self, bucket: str, key: str, expiration: int) -> str:
        """Time-limited GET URL for an object."""
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expiration,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to presign {bucket}/{key}: {e}")
            raise StorageError(f"presign failed: {e}") from e

    def sign_video(self, video: Video) -> VideoResponse:
        """Build the API view of a video, swapping the bucket key for a presigned URL.

        Videos without a file, or with a video_url that isn't a
        "<bucket>,<key>" reference, pass through unchanged.
        """
        response = VideoResponse.model_validate(video)
        ref = split_bucket_key(video.video_url)
        if ref is None:
            return response

        bucket, key = ref
        response.video_url = self.generate_presigned_url(
            bucket, key, settings.PRESIGNED_URL_EXPIRE_SECONDS
        )
        return response


def split_bucket_key(video_url: Optional[str]) -> Optional[tuple[str, str]]:
    """'bucket,key' -> ('bucket', 'key'); None if it isn't in that shape."""
    if not video_url:
        return None
    parts = video_url.split(",")
    if len(parts) < 2:
        return None
    return parts[0], parts[1]


def _make_s3_client():
    kwargs = {
        "region_name": settings.S3_REGION,
        "config": Config(signature_version="s3v4"),
    }
    if settings.S3_ENDPOINT_URL:
        kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
    # Empty credentials fall through to boto3's default provider chain
    if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return boto3.client("s3", **kwargs)


def get_storage_service() -> LocalStorageService:
    """Thumbnail storage on local disk."""
    return LocalStorageService(settings.ASSETS_ROOT, settings.BASE_URL)


@lru_cache
def get_video_storage() -> S3StorageService:
    """Video storage in the configured bucket.

    Cached because building a boto3 client is slow; tests swap it out
    with app.dependency_overrides.
    """
    return S3StorageService(settings.S3_BUCKET)
