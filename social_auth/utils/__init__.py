"""
Shared utilities: security primitives, media transfer, HTTP helpers,
Bluesky rich text and logging.
"""

from .http import http_client, raise_for_platform, require_fields, response_json
from .media import (
    ChunkPlan,
    DownloadedMedia,
    PLATFORM_MEDIA_LIMITS,
    cleanup_temp_file,
    compute_chunk_plan,
    download_media,
    download_to_temp_file,
    fetch_with_retry,
    get_video_dimensions,
    is_image_file,
    is_video_file,
)
from .richtext import detect_facets, detect_spans
from .security import (
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
    is_auth_error,
    is_token_expired,
)

__all__ = [
    "ChunkPlan",
    "DownloadedMedia",
    "PLATFORM_MEDIA_LIMITS",
    "cleanup_temp_file",
    "compute_chunk_plan",
    "detect_facets",
    "detect_spans",
    "download_media",
    "download_to_temp_file",
    "fetch_with_retry",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_state",
    "get_video_dimensions",
    "http_client",
    "is_auth_error",
    "is_image_file",
    "is_token_expired",
    "is_video_file",
    "raise_for_platform",
    "require_fields",
    "response_json",
]
