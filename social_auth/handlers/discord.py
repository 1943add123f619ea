"""
Discord publish handler.

Messages are sent through the connected channel webhook. Media is not
uploaded; it is attached by URL as an embed image.
"""

import logging
from typing import Any, Dict, Optional

from ..errors import ValidationError
from ..storage.base import CredentialStore
from ..types import DiscordConnection, Platform, PostOptions, PostResult
from ..utils.http import http_client, raise_for_platform
from .base import BaseHandler

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000
WEBHOOK_USERNAME = "Social Auth"


def build_message(options: PostOptions) -> Dict[str, Any]:
    """Webhook execute payload for a post."""
    project = (options.project_name or "").strip()

    content = options.text.strip()
    if not content:
        content = f"Summary update for {project}" if project else "Social media update"

    message: Dict[str, Any] = {
        "content": content[:MAX_CONTENT_LENGTH],
        "username": f"{WEBHOOK_USERNAME} • {project}" if project else WEBHOOK_USERNAME,
        "allowed_mentions": {"parse": []},
    }

    if options.media_url:
        embed: Dict[str, Any] = {"image": {"url": options.media_url}}
        if options.media_alt_text:
            embed["description"] = options.media_alt_text
        message["embeds"] = [embed]

    return message


class DiscordHandler(BaseHandler):
    """Publishes messages to a Discord channel webhook."""

    platform = Platform.DISCORD
    display_name = "Discord"

    async def send_post(
        self,
        user_id: str,
        connection: DiscordConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.webhook_url:
            raise ValidationError("Missing Discord webhook URL", platform=self.platform.value)

        async def publish(conn: DiscordConnection) -> Dict[str, Any]:
            await self._execute_webhook(conn.webhook_url, build_message(options))
            return {}

        return await self.publish_with_retry(user_id, connection, store, publish)

    async def _execute_webhook(self, webhook_url: str, message: Dict[str, Any]) -> Optional[int]:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(webhook_url, json=message)
            raise_for_platform(self.platform.value, response, "Discord webhook")
        return response.status_code
