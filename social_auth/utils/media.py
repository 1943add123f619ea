"""
Media transfer primitives.

Provides:
- Fetch with retry for transient transport errors
- Media download with per-platform size limits
- File-type classification by URL extension
- The chunk plan for chunked byte-range uploads
- Video dimension lookup through the system ``ffprobe`` binary
"""

import asyncio
import json
import logging
import math
import os
import re
import tempfile
from typing import Dict, NamedTuple, Optional, Tuple
from urllib.parse import urlparse

import httpx

from ..errors import MediaError
from .http import http_client

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Platform-specific media size limits (in bytes)
PLATFORM_MEDIA_LIMITS: Dict[str, Dict[str, int]] = {
    "twitter": {"image": 5 * MB, "gif": 15 * MB, "video": 512 * MB},
    "bluesky": {"image": 1 * MB, "gif": 1 * MB, "video": 50 * MB},
    "linkedin": {"image": 5 * MB, "gif": 5 * MB, "video": 5 * 1024 * MB},
    "tiktok": {"image": 10 * MB, "gif": 10 * MB, "video": 500 * MB},
}
DEFAULT_MEDIA_LIMIT = 512 * MB

VIDEO_EXTENSIONS = re.compile(r"\.(mp4|mov|avi|wmv|flv|webm|mkv|m4v)$", re.IGNORECASE)
IMAGE_EXTENSIONS = re.compile(r"\.(jpeg|jpg|png|gif|webp|bmp|svg)$", re.IGNORECASE)

# Chunked upload policy
MIN_CHUNK_SIZE_BYTES = 5 * MB
MAX_CHUNK_SIZE_BYTES = 64 * MB
DEFAULT_CHUNK_SIZE_BYTES = 20 * MB
MAX_CHUNK_COUNT = 1000


class DownloadedMedia(NamedTuple):
    """Downloaded media bytes and the reported MIME type."""

    content: bytes
    mime_type: Optional[str]


class ChunkPlan(NamedTuple):
    """Chunk size and chunk count for a chunked upload."""

    chunk_size: int
    chunk_count: int


def _path_of(url_or_path: str) -> str:
    # Query strings and fragments are ignored when sniffing extensions
    parsed = urlparse(url_or_path)
    return parsed.path if parsed.scheme else url_or_path


def is_video_file(url_or_path: str) -> bool:
    """Check if a URL or file path has a video extension."""
    return bool(VIDEO_EXTENSIONS.search(_path_of(url_or_path)))


def is_image_file(url_or_path: str) -> bool:
    """Check if a URL or file path has an image extension."""
    return bool(IMAGE_EXTENSIONS.search(_path_of(url_or_path)))


def twitter_media_category(mime_type: Optional[str]) -> Tuple[str, str]:
    """
    Map a MIME type to the X media upload (media_type, media_category) pair.

    Raises:
        MediaError: If the MIME type is missing or not uploadable
    """
    if not mime_type:
        raise MediaError("Could not determine media MIME type", platform="twitter")
    if mime_type.startswith("video/"):
        return mime_type, "tweet_video"
    if mime_type == "image/gif":
        return mime_type, "tweet_gif"
    if mime_type.startswith("image/"):
        return mime_type, "tweet_image"
    if mime_type == "text/plain":
        return mime_type, "subtitles"
    raise MediaError(f"Unsupported media type: {mime_type}", platform="twitter")


def media_limit(platform: str, kind: str = "video") -> int:
    """Size limit in bytes for a platform and media kind."""
    return PLATFORM_MEDIA_LIMITS.get(platform, {}).get(kind, DEFAULT_MEDIA_LIMIT)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    retries: int = 3,
    backoff_seconds: float = 0.5,
    **kwargs,
) -> httpx.Response:
    """
    Send a request, retrying transient transport errors.

    Only connection-level failures are retried; HTTP error statuses are
    returned to the caller unchanged.
    """
    for attempt in range(retries):
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            if attempt == retries - 1:
                raise
            delay = backoff_seconds * (attempt + 1)
            logger.debug(
                f"Transient error fetching {url} ({e}); retrying in {delay}s "
                f"(attempt {attempt + 1}/{retries})"
            )
            await asyncio.sleep(delay)

    raise MediaError(f"Failed to fetch {url}")


async def download_media(
    platform: str,
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    max_size: Optional[int] = None,
    retries: int = 3,
    backoff_seconds: float = 0.5,
) -> DownloadedMedia:
    """
    Download media into memory and detect its MIME type.

    Args:
        platform: Platform whose video limit bounds the download
        url: Source URL
        transport: Optional transport override
        max_size: Explicit size limit in bytes
        retries: Attempts for transient transport errors
        backoff_seconds: Linear backoff step between attempts

    Returns:
        DownloadedMedia with the bytes and the Content-Type header value

    Raises:
        MediaError: If the download fails or exceeds the size limit
    """
    limit = max_size or media_limit(platform, "video")

    try:
        async with http_client(transport) as client:
            response = await fetch_with_retry(
                client, "GET", url, retries=retries, backoff_seconds=backoff_seconds
            )
    except httpx.HTTPError as e:
        raise MediaError(f"Failed to download media: {e}", platform=platform) from e

    if not response.is_success:
        raise MediaError(
            f"Failed to download media: Failed to fetch media "
            f"({response.status_code}): {response.reason_phrase}",
            platform=platform,
        )

    content = response.content
    if len(content) > limit:
        raise MediaError(
            f"Failed to download media: Media file size exceeds the general "
            f"limit ({limit / MB:.0f}MB).",
            platform=platform,
        )

    mime_type = response.headers.get("content-type")
    if mime_type:
        mime_type = mime_type.split(";")[0].strip()

    return DownloadedMedia(content=content, mime_type=mime_type or None)


async def download_to_temp_file(
    url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    chunk_size: int = MB,
) -> str:
    """
    Stream a URL into a new temporary file.

    The caller owns the returned path and must remove it with
    ``cleanup_temp_file``.
    """
    suffix = os.path.splitext(_path_of(url))[1]
    fd, path = tempfile.mkstemp(prefix="social-auth-", suffix=suffix)

    try:
        with os.fdopen(fd, "wb") as handle:
            async with http_client(transport) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise MediaError(
                            f"Failed to download media ({response.status_code}): "
                            f"{response.reason_phrase}"
                        )
                    async for chunk in response.aiter_bytes(chunk_size):
                        handle.write(chunk)
    except Exception:
        cleanup_temp_file(path)
        raise

    return path


def cleanup_temp_file(path: Optional[str]) -> None:
    """Remove a temporary file, logging (not raising) on failure."""
    if not path:
        return
    try:
        if os.path.exists(path):
            os.unlink(path)
    except OSError as e:
        logger.warning(f"Failed to remove temporary file {path}: {e}")


def compute_chunk_plan(file_size: int) -> ChunkPlan:
    """
    Choose the chunk size and count for a chunked upload.

    Files up to the maximum chunk size upload as a single chunk. Larger files
    use the default chunk size, grown (within the min/max bounds) until the
    chunk count is at most 1000.

    Raises:
        MediaError: If the file is empty or too large for 1000 chunks
    """
    if file_size <= 0:
        raise MediaError("Cannot upload an empty media file")

    if file_size < MIN_CHUNK_SIZE_BYTES or file_size <= MAX_CHUNK_SIZE_BYTES:
        return ChunkPlan(chunk_size=file_size, chunk_count=1)

    chunk_size = DEFAULT_CHUNK_SIZE_BYTES
    chunk_count = math.ceil(file_size / chunk_size)

    if chunk_count > MAX_CHUNK_COUNT:
        chunk_size = math.ceil(file_size / MAX_CHUNK_COUNT)
        chunk_size = max(chunk_size, MIN_CHUNK_SIZE_BYTES)
        chunk_size = min(chunk_size, MAX_CHUNK_SIZE_BYTES)
        chunk_count = math.ceil(file_size / chunk_size)

    if chunk_count > MAX_CHUNK_COUNT:
        raise MediaError(
            f"Media file of {file_size} bytes exceeds {MAX_CHUNK_COUNT} chunks "
            f"of {MAX_CHUNK_SIZE_BYTES} bytes"
        )

    return ChunkPlan(chunk_size=chunk_size, chunk_count=chunk_count)


async def get_video_dimensions(content: bytes) -> Tuple[int, int]:
    """
    Probe video bytes for the width and height of the first video stream.

    Uses the system ``ffprobe`` binary via a subprocess.

    Raises:
        MediaError: If ffprobe is missing, fails, or finds no video stream
    """
    fd, path = tempfile.mkstemp(prefix="social-auth-video-", suffix=".mp4")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)

        cmd = [
            "ffprobe",
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height,codec_type",
            "-of", "json",
            path,
        ]
        logger.debug("ffprobe command: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise MediaError("ffprobe not found on PATH; cannot read video dimensions") from exc

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            logger.debug("ffprobe output:\n%s", stderr.decode("utf-8", errors="ignore"))
            raise MediaError(f"ffprobe failed with exit code {proc.returncode}")
    finally:
        cleanup_temp_file(path)

    return parse_ffprobe_output(stdout)


def parse_ffprobe_output(output: bytes) -> Tuple[int, int]:
    """Extract (width, height) from ffprobe JSON output."""
    try:
        metadata = json.loads(output.decode("utf-8") or "{}")
    except ValueError as e:
        raise MediaError(f"Unreadable ffprobe output: {e}") from e

    for stream in metadata.get("streams", []):
        if stream.get("codec_type", "video") != "video":
            continue
        width, height = stream.get("width"), stream.get("height")
        if width and height:
            return int(width), int(height)

    raise MediaError("No video stream found or missing dimensions.")
