"""
LinkedIn connection provider.

Implements the OAuth 2.0 authorization-code flow (no PKCE). LinkedIn only
issues refresh tokens to approved apps, so the refresh token is optional.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..errors import RefreshTokenMissingError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    LinkedInConnection,
    Platform,
    PlatformCredentials,
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


class LinkedInConnectionProvider:
    """LinkedIn OAuth 2.0 connection lifecycle."""

    platform = Platform.LINKEDIN

    AUTHORIZATION_URL = "https://www.linkedin.com/oauth/v2/authorization"
    TOKEN_URL = "https://www.linkedin.com/oauth/v2/accessToken"
    API_BASE = "https://api.linkedin.com/v2"

    SCOPES = ["openid", "profile", "email", "w_member_social"]

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
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "state": state,
            "scope": " ".join(self.SCOPES),
        }

        return AuthorizationRequest(
            auth_url=f"{self.AUTHORIZATION_URL}?{urlencode(params)}",
            state=state,
        )

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> LinkedInConnection:
        """Exchange the code and resolve the member id from OpenID userinfo."""
        client_id, client_secret = require_client_credentials(self.platform, self.credentials)
        stored = await consume_oauth_state(self.store, self.platform, state)

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "redirect_uri": redirect_uri,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            raise_for_platform(self.platform.value, response, "LinkedIn code exchange")
            token_data = response.json()

            response = await client.get(
                f"{self.API_BASE}/userinfo",
                headers={"Authorization": f"Bearer {token_data['access_token']}"},
            )
            raise_for_platform(self.platform.value, response, "LinkedIn userinfo")
            profile = response.json()

        connection = LinkedInConnection(
            uid=stored.uid,
            linkedin_user_id=profile["sub"],
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token") or None,
            id_token=token_data.get("id_token"),
            expires_at=expires_at_from(token_data.get("expires_in")),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: LinkedInConnection) -> LinkedInConnection:
        client_id, client_secret = require_client_credentials(self.platform, self.credentials)
        if not connection.refresh_token:
            raise RefreshTokenMissingError(
                "Cannot refresh: Missing LinkedIn refresh token",
                platform=self.platform.value,
            )

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": connection.refresh_token,
                    "client_id": client_id,
                    "client_secret": client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            raise_for_platform(self.platform.value, response, "LinkedIn token refresh")
            token_data = response.json()

        return await persist_refresh(
            self.store,
            connection,
            {
                "access_token": token_data["access_token"],
                "refresh_token": token_data.get("refresh_token") or connection.refresh_token,
                "expires_at": expires_at_from(token_data.get("expires_in")),
            },
        )

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
