"""
Discord connection provider (channel webhook).
"""

import logging
import re
from typing import Optional, Tuple

import httpx

from ..errors import AuthenticationError, ValidationError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    DiscordConnection,
    Platform,
    PlatformCredentials,
    utcnow,
)
from ..utils.http import http_client, response_json
from .base import (
    flow_not_supported,
    persist_refresh,
    remove_connection,
    save_new_connection,
)

logger = logging.getLogger(__name__)

DISCORD_WEBHOOK_PATTERN = re.compile(
    r"^https://(?:(?:ptb|canary)\.)?discord(?:app)?\.com/api/webhooks/(\d+)/([\w-]+)",
    re.IGNORECASE,
)


def parse_webhook_url(webhook_url: str) -> Optional[Tuple[str, str]]:
    """Return (webhook_id, webhook_token), or None for a non-webhook URL."""
    match = DISCORD_WEBHOOK_PATTERN.match((webhook_url or "").strip())
    if not match:
        return None
    return match.group(1), match.group(2)


class DiscordConnectionProvider:
    """Discord webhook connection lifecycle."""

    platform = Platform.DISCORD

    def __init__(
        self,
        store: CredentialStore,
        credentials: Optional[PlatformCredentials] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.transport = transport
        self.timeout = timeout

    async def initiate_auth(self, user_id: str, redirect_uri: str) -> AuthorizationRequest:
        raise flow_not_supported(
            self.platform,
            "Discord uses webhook authentication. Use connect() instead.",
        )

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> DiscordConnection:
        raise flow_not_supported(self.platform, "Discord does not use OAuth callbacks")

    async def _fetch_webhook(self, webhook_url: str) -> dict:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.get(webhook_url)

        if not response.is_success:
            raise AuthenticationError(
                "Discord rejected the webhook URL. Please make sure it is still active.",
                platform=self.platform.value,
                status_code=response.status_code,
            )
        return response_json(response)

    async def connect(
        self,
        user_id: str,
        webhook_url: str,
        channel_name: Optional[str] = None,
        guild_name: Optional[str] = None,
    ) -> DiscordConnection:
        """Validate a webhook URL and store the connection."""
        parsed = parse_webhook_url(webhook_url)
        if parsed is None:
            raise ValidationError(
                "Please enter a Discord webhook URL that matches "
                "https://discord.com/api/webhooks/{id}/{token}",
                platform=self.platform.value,
            )

        webhook_url = webhook_url.strip()
        webhook = await self._fetch_webhook(webhook_url)
        webhook_id, webhook_token = parsed

        connection = DiscordConnection(
            uid=user_id,
            webhook_url=webhook_url,
            webhook_id=webhook_id,
            webhook_token=webhook_token,
            channel_name=channel_name or webhook.get("channel_id"),
            guild_name=guild_name or webhook.get("guild_id"),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: DiscordConnection) -> DiscordConnection:
        """Webhooks do not expire; re-validate that the webhook still exists."""
        await self._fetch_webhook(connection.webhook_url)
        return await persist_refresh(self.store, connection, {})

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
