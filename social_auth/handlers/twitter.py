"""
Twitter/X publish handler.

Uploads media through the chunked v2 media endpoints (initialize, append,
finalize, then status polling while X processes video) and posts the tweet
through the v2 tweets endpoint. A failed media upload is not fatal: the
tweet is posted without media.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import MediaError, ValidationError
from ..storage.base import CredentialStore
from ..types import Platform, PostOptions, PostResult, TwitterConnection
from ..utils.http import http_client, raise_for_platform, require_fields, response_json
from ..utils.media import download_media, twitter_media_category
from .base import PUBLISH_ERRORS, BaseHandler

logger = logging.getLogger(__name__)

MEDIA_SEGMENT_BYTES = 4 * 1024 * 1024
MAX_STATUS_CHECKS = 60


class TwitterHandler(BaseHandler):
    """Publishes tweets with optional media."""

    platform = Platform.TWITTER
    display_name = "Twitter"

    API_BASE = "https://api.twitter.com/2"
    MEDIA_UPLOAD_URL = "https://api.x.com/2/media/upload"

    async def send_post(
        self,
        user_id: str,
        connection: TwitterConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.access_token:
            raise ValidationError("Missing Twitter access token", platform=self.platform.value)

        connection, refreshed = await self.refresh_before_publish(user_id, connection, store)

        async def publish(conn: TwitterConnection) -> Dict[str, Any]:
            media_ids: List[str] = []
            if options.media_url:
                try:
                    media_ids.append(await self._upload_media(conn, options.media_url))
                except PUBLISH_ERRORS as e:
                    logger.warning(f"Twitter media upload failed, posting text only: {e}")

            tweet_id = await self._create_tweet(conn, options.text, media_ids)
            return {"id": tweet_id, "tweet_id": tweet_id}

        return await self.publish_with_retry(user_id, connection, store, publish, refreshed)

    async def _create_tweet(
        self,
        connection: TwitterConnection,
        text: str,
        media_ids: List[str],
    ) -> str:
        payload: Dict[str, Any] = {"text": text}
        if media_ids:
            payload["media"] = {"media_ids": media_ids}

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.API_BASE}/tweets",
                headers={"Authorization": f"Bearer {connection.access_token}"},
                json=payload,
            )
            raise_for_platform(self.platform.value, response, "Tweet")
            data = response_json(response).get("data") or {}

        return require_fields(self.platform.value, data, ("id",), "Tweet")["id"]

    async def _upload_media(self, connection: TwitterConnection, media_url: str) -> str:
        """
        Upload media and wait until X has processed it.

        Returns:
            The media id to attach to the tweet
        """
        media = await download_media(
            self.platform.value,
            media_url,
            transport=self.transport,
            retries=self.settings.media_fetch_retries,
            backoff_seconds=self.settings.media_fetch_backoff_seconds,
        )
        media_type, media_category = twitter_media_category(media.mime_type)
        headers = {"Authorization": f"Bearer {connection.access_token}"}

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.MEDIA_UPLOAD_URL}/initialize",
                headers=headers,
                json={
                    "media_type": media_type,
                    "media_category": media_category,
                    "total_bytes": len(media.content),
                },
            )
            raise_for_platform(self.platform.value, response, "Twitter media initialize")
            data = response_json(response).get("data") or {}
            media_id = require_fields(
                self.platform.value, data, ("id",), "Twitter media initialize"
            )["id"]

            content = media.content
            for index, offset in enumerate(range(0, len(content), MEDIA_SEGMENT_BYTES)):
                segment = content[offset:offset + MEDIA_SEGMENT_BYTES]
                response = await client.post(
                    f"{self.MEDIA_UPLOAD_URL}/{media_id}/append",
                    headers=headers,
                    data={"segment_index": str(index)},
                    files={"media": ("media", segment, media_type)},
                )
                raise_for_platform(self.platform.value, response, "Twitter media append")

            response = await client.post(
                f"{self.MEDIA_UPLOAD_URL}/{media_id}/finalize",
                headers=headers,
            )
            raise_for_platform(self.platform.value, response, "Twitter media finalize")
            processing = (response_json(response).get("data") or {}).get("processing_info")

            await self._wait_for_processing(client, headers, media_id, processing)

        logger.debug(f"Uploaded Twitter media {media_id} ({media_category})")
        return media_id

    async def _wait_for_processing(
        self,
        client: httpx.AsyncClient,
        headers: Dict[str, str],
        media_id: str,
        processing: Optional[Dict[str, Any]],
    ) -> None:
        checks = 0
        while processing and processing.get("state") in ("pending", "in_progress"):
            if checks >= MAX_STATUS_CHECKS:
                raise MediaError(
                    f"Twitter media {media_id} still processing after {checks} checks",
                    platform=self.platform.value,
                )
            checks += 1
            await asyncio.sleep(processing.get("check_after_secs", 1))

            response = await client.get(
                self.MEDIA_UPLOAD_URL,
                headers=headers,
                params={"command": "STATUS", "media_id": media_id},
            )
            raise_for_platform(self.platform.value, response, "Twitter media status")
            processing = (response_json(response).get("data") or {}).get("processing_info")

        if processing and processing.get("state") == "failed":
            error = processing.get("error", {})
            raise MediaError(
                f"Twitter media processing failed: {error.get('message') or error}",
                platform=self.platform.value,
            )
