"""
TikTok publish handler.

Videos are streamed to a temporary file and uploaded to the creator's inbox
with chunked byte-range PUTs. Photos are published by letting TikTok pull
the image from its URL. TikTok posts always need media.
"""

import logging
import os
from typing import Any, Dict, Optional

from ..errors import ValidationError
from ..storage.base import CredentialStore
from ..types import Platform, PostOptions, PostResult, TikTokConnection
from ..utils.http import http_client, raise_for_platform, require_fields, response_json
from ..utils.media import (
    cleanup_temp_file,
    compute_chunk_plan,
    download_to_temp_file,
    is_video_file,
)
from .base import BaseHandler

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 90
MAX_DESCRIPTION_LENGTH = 4000
DEFAULT_TITLE = "New Video Post"


class TikTokHandler(BaseHandler):
    """Publishes videos and photos to TikTok."""

    platform = Platform.TIKTOK
    display_name = "TikTok"

    API_BASE = "https://open.tiktokapis.com/v2"

    async def send_post(
        self,
        user_id: str,
        connection: TikTokConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.access_token:
            raise ValidationError("Missing TikTok access token", platform=self.platform.value)
        if not options.media_url:
            raise ValidationError(
                "TikTok posts require a video or photo (media_url)",
                platform=self.platform.value,
            )

        connection, refreshed = await self.refresh_before_publish(user_id, connection, store)

        async def publish(conn: TikTokConnection) -> Dict[str, Any]:
            if is_video_file(options.media_url):
                publish_id = await self._publish_video(conn, options)
            else:
                publish_id = await self._publish_photo(conn, options)
            return {"publish_id": publish_id}

        return await self.publish_with_retry(user_id, connection, store, publish, refreshed)

    def _headers(self, connection: TikTokConnection) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {connection.access_token}",
            "Content-Type": "application/json; charset=UTF-8",
        }

    def _post_info(self, options: PostOptions, privacy_level: str) -> Dict[str, Any]:
        return {
            "title": options.text[:MAX_TITLE_LENGTH] or DEFAULT_TITLE,
            "description": options.text[:MAX_DESCRIPTION_LENGTH],
            "privacy_level": privacy_level,
        }

    async def _publish_video(self, connection: TikTokConnection, options: PostOptions) -> Optional[str]:
        temp_path = None
        try:
            temp_path = await download_to_temp_file(options.media_url, transport=self.transport)
            file_size = os.path.getsize(temp_path)
            plan = compute_chunk_plan(file_size)
            logger.debug(
                f"TikTok upload of {file_size} bytes in {plan.chunk_count} chunk(s) "
                f"of {plan.chunk_size} bytes"
            )

            async with http_client(self.transport, self.timeout) as client:
                response = await client.post(
                    f"{self.API_BASE}/post/publish/inbox/video/init/",
                    headers=self._headers(connection),
                    json={
                        "source_info": {
                            "source": "FILE_UPLOAD",
                            "video_size": file_size,
                            "chunk_size": plan.chunk_size,
                            "total_chunk_count": plan.chunk_count,
                        }
                    },
                )
                raise_for_platform(self.platform.value, response, "TikTok video init")
                data = require_fields(
                    self.platform.value,
                    response_json(response).get("data") or {},
                    ("publish_id", "upload_url"),
                    "TikTok video init",
                )
                publish_id = data["publish_id"]
                upload_url = data["upload_url"]

                with open(temp_path, "rb") as handle:
                    for index in range(plan.chunk_count):
                        start = index * plan.chunk_size
                        chunk = handle.read(plan.chunk_size)
                        end = start + len(chunk) - 1
                        response = await client.put(
                            upload_url,
                            content=chunk,
                            headers={
                                "Content-Type": "video/mp4",
                                "Content-Range": f"bytes {start}-{end}/{file_size}",
                            },
                        )
                        raise_for_platform(
                            self.platform.value,
                            response,
                            f"TikTok chunk {index + 1}/{plan.chunk_count} upload",
                        )

                response = await client.post(
                    f"{self.API_BASE}/post/publish/video/publish/",
                    headers=self._headers(connection),
                    json={
                        "publish_id": publish_id,
                        "post_info": self._post_info(options, "PUBLIC_TO_EVERYONE"),
                    },
                )
                raise_for_platform(self.platform.value, response, "TikTok video publish")
        finally:
            cleanup_temp_file(temp_path)

        return publish_id

    async def _publish_photo(self, connection: TikTokConnection, options: PostOptions) -> Optional[str]:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.API_BASE}/post/publish/content/init/",
                headers=self._headers(connection),
                json={
                    "media_type": "PHOTO",
                    "post_mode": "MEDIA_UPLOAD",
                    "post_info": self._post_info(options, "SELF_ONLY"),
                    "source_info": {
                        "source": "PULL_FROM_URL",
                        "photo_images": [options.media_url],
                        "photo_cover_index": 0,
                    },
                },
            )
            raise_for_platform(self.platform.value, response, "TikTok photo init")
            data = response_json(response).get("data") or {}
            publish_id = require_fields(self.platform.value, data, ("publish_id",), "TikTok photo init")["publish_id"]

            response = await client.post(
                f"{self.API_BASE}/post/publish/content/publish/",
                headers=self._headers(connection),
                json={"publish_id": publish_id},
            )
            raise_for_platform(self.platform.value, response, "TikTok photo publish")

        return publish_id
