"""
Dev.to connection provider (API key).
"""

import logging
from typing import Optional

import httpx

from ..errors import AuthenticationError, ValidationError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    DevtoConnection,
    Platform,
    PlatformCredentials,
    utcnow,
)
from ..utils.http import http_client, raise_for_platform
from .base import (
    flow_not_supported,
    persist_refresh,
    remove_connection,
    save_new_connection,
)

logger = logging.getLogger(__name__)

DEVTO_API_BASE = "https://dev.to/api"


class DevtoConnectionProvider:
    """Dev.to API-key connection lifecycle."""

    platform = Platform.DEVTO

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
            "Dev.to uses API key authentication. Use connect() instead.",
        )

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> DevtoConnection:
        raise flow_not_supported(self.platform, "Dev.to does not use OAuth callbacks")

    async def _fetch_user(self, api_key: str) -> dict:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.get(
                f"{DEVTO_API_BASE}/users/me",
                headers={"api-key": api_key, "Content-Type": "application/json"},
            )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Invalid API key. Please check your Dev.to API key.",
                platform=self.platform.value,
                status_code=response.status_code,
            )
        raise_for_platform(self.platform.value, response, "Dev.to API key check")
        return response.json()

    async def connect(self, user_id: str, api_key: str) -> DevtoConnection:
        """Validate an API key and store the connection."""
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValidationError("Dev.to API key is required", platform=self.platform.value)

        user = await self._fetch_user(api_key)
        connection = DevtoConnection(
            uid=user_id,
            api_key=api_key,
            username=user.get("username") or user.get("name"),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: DevtoConnection) -> DevtoConnection:
        """API keys do not expire; re-validate the key instead."""
        user = await self._fetch_user(connection.api_key)
        return await persist_refresh(
            self.store,
            connection,
            {"username": user.get("username") or connection.username},
        )

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
