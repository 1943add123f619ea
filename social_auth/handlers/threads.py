"""
Threads publish handler.

Publishing is two calls: create a media container, then publish it. Threads
needs time to process a container before it can be published, so the
handler waits ``threads_publish_delay_seconds`` in between.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ..errors import ValidationError
from ..storage.base import CredentialStore
from ..types import Platform, PostOptions, PostResult, ThreadsConnection
from ..utils.http import http_client, raise_for_platform, require_fields, response_json
from ..utils.media import is_image_file, is_video_file
from .base import BaseHandler

logger = logging.getLogger(__name__)


def container_params(options: PostOptions) -> Dict[str, str]:
    """Container fields for the post's text and media reference."""
    params = {"media_type": "TEXT", "text": options.text}
    media_url = options.media_url
    if media_url and is_video_file(media_url):
        params.update(media_type="VIDEO", video_url=media_url)
    elif media_url and is_image_file(media_url):
        params.update(media_type="IMAGE", image_url=media_url)
    elif media_url:
        logger.warning(f"Unrecognized Threads media type for {media_url}, posting text only")
    return params


class ThreadsHandler(BaseHandler):
    """Publishes Threads posts through the Graph API container flow."""

    platform = Platform.THREADS
    display_name = "Threads"

    API_BASE = "https://graph.threads.net/v1.0"

    async def send_post(
        self,
        user_id: str,
        connection: ThreadsConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.access_token or not connection.threads_user_id:
            raise ValidationError(
                "Missing Threads access token or user id",
                platform=self.platform.value,
            )

        connection, refreshed = await self.refresh_before_publish(user_id, connection, store)

        async def publish(conn: ThreadsConnection) -> Dict[str, Any]:
            creation_id = await self._create_container(conn, options)
            logger.debug(
                f"Waiting {self.settings.threads_publish_delay_seconds}s before "
                f"publishing Threads container {creation_id}"
            )
            await asyncio.sleep(self.settings.threads_publish_delay_seconds)
            return {"id": await self._publish_container(conn, creation_id)}

        return await self.publish_with_retry(user_id, connection, store, publish, refreshed)

    async def _create_container(self, connection: ThreadsConnection, options: PostOptions) -> str:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.API_BASE}/{connection.threads_user_id}/threads",
                data={"access_token": connection.access_token, **container_params(options)},
            )
            raise_for_platform(self.platform.value, response, "Threads container create")
        return require_fields(self.platform.value, response_json(response), ("id",), "Threads container create")["id"]

    async def _publish_container(self, connection: ThreadsConnection, creation_id: str) -> Optional[str]:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.API_BASE}/{connection.threads_user_id}/threads_publish",
                data={"access_token": connection.access_token, "creation_id": creation_id},
            )
            raise_for_platform(self.platform.value, response, "Threads publish")
        post_id = response_json(response).get("id")
        if not post_id:
            logger.warning(f"Threads published container {creation_id} without returning a post id")
        return post_id
