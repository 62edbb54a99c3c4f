"""
Video API endpoints.

These handle the lifecycle of a video record:
1. Create a draft record (title + description)
2. Attach a thumbnail image
3. Attach the video file itself
4. List / get / delete records

Design notes:
- Routers are THIN — they parse HTTP requests and call services
- File validation happens here (type, size) because it's an HTTP concern
- Storage and ffmpeg details are delegated to services
- Only the owner of a record may change it; everyone must send a JWT
- video_url is stored as "<bucket>,<key>" and signed on every response
"""

import asyncio
import base64
import logging
import tempfile
from typing import Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models import Video
from app.schemas.videos import VideoCreateRequest, VideoResponse
from app.services.auth import get_current_user_id
from app.services.media import (
    MediaProcessingError,
    aspect_ratio_prefix,
    get_video_aspect_ratio,
    process_video_for_fast_start,
    remove_file_quietly,
)
from app.services.storage import (
    S3StorageService,
    StorageError,
    get_asset_path,
    get_storage_service,
    get_video_storage,
    parse_media_type,
    split_bucket_key,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["videos"])

ALLOWED_THUMBNAIL_TYPES = {"image/jpeg", "image/png"}
VIDEO_MEDIA_TYPE = "video/mp4"
COPY_CHUNK_SIZE = 1024 * 1024  # 1MB chunks


# --- Helpers ---

def _parse_video_id(video_id: str) -> UUID:
    try:
        return UUID(video_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid ID")


async def _get_owned_video(db: AsyncSession, video_id: UUID, user_id: UUID) -> Video:
    result = await db.execute(select(Video).where(Video.id == video_id))
    video = result.scalar_one_or_none()

    if not video:
        raise HTTPException(status_code=404, detail="Couldn't find video")
    if video.user_id != user_id:
        raise HTTPException(status_code=401, detail="Not authorized to update this video")
    return video


def _validate_content_length(request: Request, limit: int) -> None:
    """Reject oversized uploads from the Content-Length header alone."""
    content_length = request.headers.get("content-length")
    if not content_length:
        return
    try:
        too_large = int(content_length) > limit
    except ValueError:
        return  # Fall back to counting bytes while copying
    if too_large:
        raise HTTPException(status_code=413, detail="Upload too large")


async def _sign(storage: S3StorageService, video: Video) -> VideoResponse:
    try:
        return await asyncio.to_thread(storage.sign_video, video)
    except StorageError:
        raise HTTPException(status_code=500, detail="Couldn't generate presigned URL")


# --- Records ---

@router.post("/videos", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    request: VideoCreateRequest,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft video owned by the caller. Files are attached later."""
    video = Video(
        title=request.title,
        description=request.description,
        user_id=user_id,
    )
    db.add(video)
    await db.commit()
    await db.refresh(video)

    return VideoResponse.model_validate(video)


@router.get("/videos", response_model=list[VideoResponse])
async def list_videos(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    storage: S3StorageService = Depends(get_video_storage),
):
    """List the caller's videos, newest first."""
    result = await db.execute(
        select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
    )
    videos = result.scalars().all()
    return [await _sign(storage, v) for v in videos]


@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    storage: S3StorageService = Depends(get_video_storage),
):
    """Get one of the caller's videos."""
    video = await _get_owned_video(db, _parse_video_id(video_id), user_id)
    return await _sign(storage, video)


@router.delete("/videos/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: str,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    storage: S3StorageService = Depends(get_video_storage),
):
    """Delete a video record along with its stored files."""
    video = await _get_owned_video(db, _parse_video_id(video_id), user_id)

    ref = split_bucket_key(video.video_url)
    if ref is not None:
        try:
            await asyncio.to_thread(storage.delete_object, *ref)
        except StorageError:
            raise HTTPException(status_code=500, detail="Couldn't delete video file")

    if video.thumbnail_url:
        await get_storage_service().delete_url(video.thumbnail_url)

    await db.delete(video)
    await db.commit()

    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Uploads ---

@router.post("/thumbnail_upload/{video_id}", response_model=VideoResponse)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    thumbnail: Optional[UploadFile] = File(None),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    storage: S3StorageService = Depends(get_video_storage),
):
    """Attach a JPEG or PNG thumbnail to a video.

    Depending on THUMBNAIL_STORAGE the image is either embedded in the
    record as a base64 data: URL ("inline") or written under ASSETS_ROOT
    and served from /assets/ ("disk").
    """
    vid = _parse_video_id(video_id)
    _validate_content_length(request, settings.MAX_THUMBNAIL_BYTES + COPY_CHUNK_SIZE)

    logger.info(f"Uploading thumbnail for video {vid} by user {user_id}")

    if thumbnail is None:
        raise HTTPException(status_code=400, detail="Unable to parse form file")

    if not thumbnail.content_type:
        raise HTTPException(status_code=400, detail="Missing Content-Type for thumbnail")
    try:
        media_type = parse_media_type(thumbnail.content_type)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid Content-Type")
    if media_type not in ALLOWED_THUMBNAIL_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type")

    data = await thumbnail.read(settings.MAX_THUMBNAIL_BYTES + 1)
    if len(data) > settings.MAX_THUMBNAIL_BYTES:
        raise HTTPException(status_code=413, detail="Thumbnail too large")

    video = await _get_owned_video(db, vid, user_id)
    previous_url = video.thumbnail_url

    local_storage = get_storage_service()
    if settings.THUMBNAIL_STORAGE == "inline":
        encoded = base64.b64encode(data).decode("ascii")
        thumbnail_url = f"data:{media_type};base64,{encoded}"
    else:
        try:
            thumbnail_url = await local_storage.save_bytes(data, media_type)
        except StorageError:
            raise HTTPException(status_code=500, detail="Error saving file")

    video.thumbnail_url = thumbnail_url
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        await local_storage.delete_url(thumbnail_url)
        logger.exception(f"Failed to update thumbnail for video {vid}")
        raise HTTPException(status_code=500, detail="Unable to update video")
    await db.refresh(video)

    if previous_url and previous_url != thumbnail_url:
        await local_storage.delete_url(previous_url)

    return await _sign(storage, video)


@router.post("/video_upload/{video_id}", response_model=VideoResponse)
async def upload_video(
    video_id: str,
    request: Request,
    video: Optional[UploadFile] = File(None),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    storage: S3StorageService = Depends(get_video_storage),
):
    """Attach an MP4 file to a video.

    Pipeline:
    1. Copy the upload to a temp file (size-capped at MAX_VIDEO_BYTES)
    2. ffprobe it to pick a key prefix: landscape/, portrait/ or other/
    3. Remux for fast start
    4. PUT the processed file in the bucket
    5. Store "<bucket>,<key>" on the record and respond with a signed URL
    """
    _validate_content_length(request, settings.MAX_VIDEO_BYTES)
    vid = _parse_video_id(video_id)

    record = await _get_owned_video(db, vid, user_id)

    if video is None:
        raise HTTPException(status_code=400, detail="Unable to parse form file")

    try:
        media_type = parse_media_type(video.content_type)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid Content-Type")
    if media_type != VIDEO_MEDIA_TYPE:
        raise HTTPException(status_code=400, detail="Invalid file type, only MP4 is allowed")

    logger.info(f"Uploading video file for video {vid} by user {user_id}")

    temp_file = tempfile.NamedTemporaryFile(
        prefix="tubely-upload", suffix=".mp4", delete=False
    )
    processed_path = None
    try:
        try:
            await _copy_with_limit(video, temp_file, settings.MAX_VIDEO_BYTES)
        except OSError:
            raise HTTPException(status_code=500, detail="Could not write file to disk")
        finally:
            temp_file.close()

        try:
            aspect_ratio = await asyncio.to_thread(get_video_aspect_ratio, temp_file.name)
        except MediaProcessingError as e:
            logger.warning(f"Aspect ratio detection failed for video {vid}: {e}")
            raise HTTPException(status_code=500, detail="Error getting aspect ratio")

        key = f"{aspect_ratio_prefix(aspect_ratio)}/{get_asset_path(media_type)}"

        try:
            processed_path = await asyncio.to_thread(
                process_video_for_fast_start, temp_file.name
            )
        except MediaProcessingError as e:
            logger.warning(f"Fast-start processing failed for video {vid}: {e}")
            raise HTTPException(status_code=500, detail="Error processing video file")

        try:
            await asyncio.to_thread(storage.put_file, processed_path, key, media_type)
        except StorageError:
            raise HTTPException(status_code=500, detail="Error uploading file to S3")
    finally:
        remove_file_quietly(temp_file.name)
        if processed_path:
            remove_file_quietly(processed_path)

    previous_ref = split_bucket_key(record.video_url)
    record.video_url = storage.bucket_key(key)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Failed to store video URL for video {vid}")
        await _delete_object_logged(storage, storage.bucket, key)
        raise HTTPException(status_code=500, detail="Couldn't update video")
    await db.refresh(record)

    if previous_ref is not None and previous_ref != (storage.bucket, key):
        await _delete_object_logged(storage, *previous_ref)

    return await _sign(storage, record)


async def _delete_object_logged(storage: S3StorageService, bucket: str, key: str) -> None:
    """Remove an object that no record points at any more.

    The request has already succeeded or failed on its own terms, so a
    failed delete is logged and left for manual cleanup.
    """
    try:
        await asyncio.to_thread(storage.delete_object, bucket, key)
    except StorageError as e:
        logger.warning(f"Left orphaned object {bucket}/{key}: {e}")


async def _copy_with_limit(upload: UploadFile, dest, max_size: int) -> int:
    """Stream an upload into an open file, enforcing a byte limit."""
    total = 0
    while True:
        chunk = await upload.read(COPY_CHUNK_SIZE)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise HTTPException(status_code=413, detail="Upload too large")
        dest.write(chunk)
    return total
