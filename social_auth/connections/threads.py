"""
Threads connection provider.

Implements the Threads OAuth flow. The short-lived token from the code
exchange is traded for a long-lived (60 day) token when possible; the
long-lived token is then extended with ``th_refresh_token`` instead of a
separate refresh token.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..errors import AuthenticationError, PlatformAPIError, RefreshTokenMissingError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    Platform,
    PlatformCredentials,
    ThreadsConnection,
    utcnow,
)
from ..utils.http import http_client, raise_for_platform
from .base import (
    consume_oauth_state,
    create_oauth_state,
    expires_at_from,
    persist_refresh,
    remove_connection,
    require_client_credentials,
    save_new_connection,
)

logger = logging.getLogger(__name__)


class ThreadsConnectionProvider:
    """Threads OAuth connection lifecycle."""

    platform = Platform.THREADS

    AUTHORIZATION_URL = "https://threads.net/oauth/authorize"
    GRAPH_BASE = "https://graph.threads.net"

    SCOPES = "threads_basic,threads_content_publish"

    def __init__(
        self,
        store: CredentialStore,
        credentials: Optional[PlatformCredentials],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.transport = transport
        self.timeout = timeout

    async def initiate_auth(self, user_id: str, redirect_uri: str) -> AuthorizationRequest:
        client_id, _ = require_client_credentials(self.platform, self.credentials)
        state = await create_oauth_state(self.store, self.platform, user_id)

        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": self.SCOPES,
            "response_type": "code",
            "state": state,
        }

        return AuthorizationRequest(
            auth_url=f"{self.AUTHORIZATION_URL}?{urlencode(params)}",
            state=state,
        )

    async def _exchange_long_lived(
        self,
        client: httpx.AsyncClient,
        short_lived_token: str,
        client_secret: str,
    ) -> Optional[dict]:
        """Trade a short-lived token for a long-lived one; None on failure."""
        response = await client.get(
            f"{self.GRAPH_BASE}/access_token",
            params={
                "grant_type": "th_exchange_token",
                "client_secret": client_secret,
                "access_token": short_lived_token,
            },
        )
        try:
            raise_for_platform(self.platform.value, response, "Threads long-lived token exchange")
        except (AuthenticationError, PlatformAPIError) as e:
            logger.warning(f"Keeping short-lived Threads token: {e}")
            return None
        return response.json()

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> ThreadsConnection:
        client_id, client_secret = require_client_credentials(self.platform, self.credentials)
        stored = await consume_oauth_state(self.store, self.platform, state)

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.GRAPH_BASE}/oauth/access_token",
                data={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                    "code": code,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            raise_for_platform(self.platform.value, response, "Threads code exchange")
            token_data = response.json()

            long_lived = await self._exchange_long_lived(
                client, token_data["access_token"], client_secret
            )
            if long_lived and long_lived.get("access_token"):
                token_data = long_lived

            response = await client.get(
                f"{self.GRAPH_BASE}/v1.0/me",
                params={"fields": "id,username", "access_token": token_data["access_token"]},
            )
            raise_for_platform(self.platform.value, response, "Threads user lookup")
            user = response.json()

        threads_user_id = user.get("id") or token_data.get("user_id")
        if not threads_user_id:
            raise AuthenticationError(
                "Failed to fetch user details from Threads",
                platform=self.platform.value,
            )

        connection = ThreadsConnection(
            uid=stored.uid,
            threads_user_id=str(threads_user_id),
            access_token=token_data["access_token"],
            expires_at=expires_at_from(token_data.get("expires_in")),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: ThreadsConnection) -> ThreadsConnection:
        """Extend the long-lived access token."""
        if not connection.access_token:
            raise RefreshTokenMissingError(
                "Cannot refresh: Missing Threads access token",
                platform=self.platform.value,
            )

        async with http_client(self.transport, self.timeout) as client:
            response = await client.get(
                f"{self.GRAPH_BASE}/refresh_access_token",
                params={
                    "grant_type": "th_refresh_token",
                    "access_token": connection.access_token,
                },
            )
            raise_for_platform(self.platform.value, response, "Threads token refresh")
            token_data = response.json()

        return await persist_refresh(
            self.store,
            connection,
            {
                "access_token": token_data.get("access_token") or connection.access_token,
                "expires_at": expires_at_from(token_data.get("expires_in")),
            },
        )

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
