"""
Video inspection and preparation using the ffmpeg toolchain.

Two steps run on every uploaded video before it goes to object storage:

1. get_video_aspect_ratio() — ffprobe reports the stream dimensions and we
   classify them as "16:9", "9:16" or "other". The result decides the key
   prefix (landscape/, portrait/, other/) in the bucket.
2. process_video_for_fast_start() — ffmpeg remuxes the file (no re-encode)
   with the moov atom at the front so browsers can start playback before
   the whole file has downloaded.

Both are BLOCKING subprocess calls. Routers run them via asyncio.to_thread()
so they don't stall the event loop.
"""

import json
import logging
import os
import subprocess

from app.config import settings

logger = logging.getLogger(__name__)

LANDSCAPE = "16:9"
PORTRAIT = "9:16"
OTHER = "other"

# How far width/height may drift from an exact ratio and still count
ASPECT_TOLERANCE = 0.02

_PREFIXES = {
    LANDSCAPE: "landscape",
    PORTRAIT: "portrait",
    OTHER: "other",
}


class MediaProcessingError(Exception):
    """ffprobe/ffmpeg failed or produced something we can't use."""


def find_gcd(a: int, b: int) -> int:
    """Greatest common divisor (Euclid). find_gcd(0, b) == b."""
    while a:
        a, b = b % a, a
    return b


def classify_aspect_ratio(width: int, height: int) -> str:
    """Bucket a frame size into "16:9", "9:16" or "other".

    Exact ratios are matched after reducing by the GCD. Sizes that don't
    reduce cleanly (e.g. 1366x768, 608x1080) still count when width/height
    is within ASPECT_TOLERANCE of the target.

    Raises:
        MediaProcessingError: If either dimension is zero.
    """
    if width == 0 or height == 0:
        raise MediaProcessingError("width and height can't be 0")

    gcd = find_gcd(width, height)
    width_ratio, height_ratio = width // gcd, height // gcd
    if (width_ratio, height_ratio) == (16, 9):
        return LANDSCAPE
    if (width_ratio, height_ratio) == (9, 16):
        return PORTRAIT

    ratio = width / height
    if abs(ratio - 9 / 16) < ASPECT_TOLERANCE:
        return PORTRAIT
    if abs(ratio - 16 / 9) < ASPECT_TOLERANCE:
        return LANDSCAPE
    return OTHER


def aspect_ratio_prefix(aspect_ratio: str) -> str:
    """Map an aspect ratio to its key prefix in the video bucket."""
    return _PREFIXES.get(aspect_ratio, "other")


def get_video_aspect_ratio(file_path: str) -> str:
    """Run ffprobe on a video file and classify its first video stream.

    Raises:
        MediaProcessingError: ffprobe failed, printed unparseable output,
            or the file has no usable video stream.
    """
    cmd = [
        settings.FFPROBE_PATH,
        "-v", "error",
        "-print_format", "json",
        "-show_streams",
        file_path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, check=False)
    except OSError as e:
        raise MediaProcessingError(f"could not run ffprobe: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        logger.warning(f"ffprobe exited with {result.returncode}: {stderr}")
        raise MediaProcessingError(f"ffprobe failed: {stderr}")

    try:
        output = json.loads(result.stdout)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MediaProcessingError(f"could not parse ffprobe output: {e}") from e

    streams = output.get("streams") or []
    if not streams:
        raise MediaProcessingError("ffprobe did not output any streams")

    for stream in streams:
        if stream.get("codec_type") == "video":
            width = int(stream.get("width") or 0)
            height = int(stream.get("height") or 0)
            return classify_aspect_ratio(width, height)

    raise MediaProcessingError("ffprobe did not find video stream")


def process_video_for_fast_start(input_file_path: str) -> str:
    """Remux a video so its moov atom comes first.

    Writes "<input>.processing" next to the input and returns that path.
    The caller owns the output file and must delete it.

    Raises:
        MediaProcessingError: ffmpeg failed or wrote an empty file.
    """
    processed_file_path = f"{input_file_path}.processing"

    cmd = [
        settings.FFMPEG_PATH,
        "-i", input_file_path,
        "-c", "copy",
        "-movflags", "faststart",
        "-f", "mp4",
        processed_file_path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, check=False)
    except OSError as e:
        raise MediaProcessingError(f"could not run ffmpeg: {e}") from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        remove_file_quietly(processed_file_path)
        raise MediaProcessingError(f"error processing video: {stderr}")

    try:
        size = os.stat(processed_file_path).st_size
    except OSError as e:
        raise MediaProcessingError(f"could not stat processed file: {e}") from e

    if size == 0:
        remove_file_quietly(processed_file_path)
        raise MediaProcessingError("processed file is empty")

    return processed_file_path


def remove_file_quietly(path: str) -> None:
    """os.remove() that tolerates the file already being gone."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
