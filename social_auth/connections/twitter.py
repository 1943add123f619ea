"""
Twitter/X connection provider.

Implements the OAuth 2.0 authorization-code flow with PKCE and token refresh.
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from ..errors import AuthenticationError, RefreshTokenMissingError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    Platform,
    PlatformCredentials,
    TwitterConnection,
    utcnow,
)
from ..utils.http import http_client, raise_for_platform
from ..utils.security import generate_code_challenge, generate_code_verifier
from .base import (
    basic_auth_header,
    consume_oauth_state,
    create_oauth_state,
    expires_at_from,
    persist_refresh,
    remove_connection,
    require_client_credentials,
    save_new_connection,
)

logger = logging.getLogger(__name__)


class TwitterConnectionProvider:
    """Twitter/X OAuth 2.0 (PKCE) connection lifecycle."""

    platform = Platform.TWITTER

    AUTHORIZATION_URL = "https://twitter.com/i/oauth2/authorize"
    TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
    API_BASE = "https://api.twitter.com/2"

    SCOPES = ["tweet.read", "tweet.write", "users.read", "offline.access", "media.write"]

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

    def _token_headers(self) -> dict:
        client_id, client_secret = require_client_credentials(self.platform, self.credentials)
        return {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": basic_auth_header(client_id, client_secret),
        }

    async def initiate_auth(self, user_id: str, redirect_uri: str) -> AuthorizationRequest:
        """Build the authorization URL with an S256 PKCE challenge."""
        client_id, _ = require_client_credentials(self.platform, self.credentials)

        verifier = generate_code_verifier()
        state = await create_oauth_state(self.store, self.platform, user_id, verifier)

        params = {
            "response_type": "code",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(self.SCOPES),
            "state": state,
            "code_challenge": generate_code_challenge(verifier),
            "code_challenge_method": "S256",
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
    ) -> TwitterConnection:
        """Exchange the authorization code and store the connection."""
        client_id, _ = require_client_credentials(self.platform, self.credentials)
        stored = await consume_oauth_state(self.store, self.platform, state)

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": client_id,
                    "code_verifier": stored.code_verifier,
                },
                headers=self._token_headers(),
            )
            raise_for_platform(self.platform.value, response, "Twitter code exchange")
            token_data = response.json()

            response = await client.get(
                f"{self.API_BASE}/users/me",
                headers={"Authorization": f"Bearer {token_data['access_token']}"},
                params={"user.fields": "id,username"},
            )
            raise_for_platform(self.platform.value, response, "Twitter user lookup")
            user = response.json().get("data")

        if not user:
            raise AuthenticationError(
                "Failed to fetch user details from Twitter",
                platform=self.platform.value,
            )

        connection = TwitterConnection(
            uid=stored.uid,
            twitter_user_id=user["id"],
            screen_name=user["username"],
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_at=expires_at_from(token_data.get("expires_in")),
            scopes=(token_data.get("scope") or "").split(),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: TwitterConnection) -> TwitterConnection:
        """Exchange the refresh token for a new access token."""
        client_id, _ = require_client_credentials(self.platform, self.credentials)
        if not connection.refresh_token:
            raise RefreshTokenMissingError(
                "Cannot refresh: Missing Twitter refresh token",
                platform=self.platform.value,
            )

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                self.TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": connection.refresh_token,
                    "client_id": client_id,
                },
                headers=self._token_headers(),
            )
            raise_for_platform(self.platform.value, response, "Twitter token refresh")
            token_data = response.json()

        updates = {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token") or connection.refresh_token,
            "expires_at": expires_at_from(token_data.get("expires_in")),
        }
        if token_data.get("scope"):
            updates["scopes"] = token_data["scope"].split()

        return await persist_refresh(self.store, connection, updates)

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
