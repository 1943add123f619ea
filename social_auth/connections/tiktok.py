"""
TikTok connection provider.

Implements the TikTok Login Kit OAuth 2.0 flow with PKCE. TikTok names the
client id ``client_key`` and returns granted scopes comma-separated.
"""

import logging
from typing import List, Optional
from urllib.parse import urlencode

import httpx

from ..errors import AuthenticationError, RefreshTokenMissingError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    Platform,
    PlatformCredentials,
    TikTokConnection,
    utcnow,
)
from ..utils.http import http_client, raise_for_platform
from ..utils.security import generate_code_challenge, generate_code_verifier
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


def _split_scopes(scope: Optional[str]) -> List[str]:
    return [s.strip() for s in (scope or "").split(",") if s.strip()]


class TikTokConnectionProvider:
    """TikTok OAuth 2.0 (PKCE) connection lifecycle."""

    platform = Platform.TIKTOK

    AUTHORIZATION_URL = "https://www.tiktok.com/v2/auth/authorize/"
    API_BASE = "https://open.tiktokapis.com/v2"

    SCOPES = "user.info.basic,video.upload,video.publish"
    USER_FIELDS = "open_id,display_name,username,avatar_url,follower_count"

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

    @property
    def token_url(self) -> str:
        return f"{self.API_BASE}/oauth/token/"

    async def initiate_auth(self, user_id: str, redirect_uri: str) -> AuthorizationRequest:
        client_key, _ = require_client_credentials(self.platform, self.credentials)

        verifier = generate_code_verifier()
        state = await create_oauth_state(self.store, self.platform, user_id, verifier)

        params = {
            "client_key": client_key,
            "scope": self.SCOPES,
            "response_type": "code",
            "redirect_uri": redirect_uri,
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
    ) -> TikTokConnection:
        client_key, client_secret = require_client_credentials(self.platform, self.credentials)
        stored = await consume_oauth_state(self.store, self.platform, state)

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                self.token_url,
                data={
                    "client_key": client_key,
                    "client_secret": client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                    "code_verifier": stored.code_verifier,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            raise_for_platform(self.platform.value, response, "TikTok code exchange")
            token_data = response.json()
            if "access_token" not in token_data:
                raise AuthenticationError(
                    f"TikTok code exchange failed: {token_data.get('error_description') or token_data}",
                    platform=self.platform.value,
                    error_code=token_data.get("error"),
                    raw_error=token_data,
                )

            response = await client.get(
                f"{self.API_BASE}/user/info/",
                params={"fields": self.USER_FIELDS},
                headers={"Authorization": f"Bearer {token_data['access_token']}"},
            )
            raise_for_platform(self.platform.value, response, "TikTok user lookup")
            user = response.json().get("data", {}).get("user", {})

        connection = TikTokConnection(
            uid=stored.uid,
            tiktok_user_id=user.get("open_id") or token_data.get("open_id"),
            display_name=user.get("display_name"),
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_at=expires_at_from(token_data.get("expires_in")),
            scopes=_split_scopes(token_data.get("scope")),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: TikTokConnection) -> TikTokConnection:
        client_key, client_secret = require_client_credentials(self.platform, self.credentials)
        if not connection.refresh_token:
            raise RefreshTokenMissingError(
                "Cannot refresh: Missing TikTok refresh token",
                platform=self.platform.value,
            )

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                self.token_url,
                data={
                    "client_key": client_key,
                    "client_secret": client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": connection.refresh_token,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            raise_for_platform(self.platform.value, response, "TikTok token refresh")
            token_data = response.json()

        if "access_token" not in token_data:
            raise AuthenticationError(
                f"TikTok token refresh failed: {token_data.get('error_description') or token_data}",
                platform=self.platform.value,
                error_code=token_data.get("error"),
                raw_error=token_data,
            )

        updates = {
            "access_token": token_data["access_token"],
            "refresh_token": token_data.get("refresh_token") or connection.refresh_token,
            "expires_at": expires_at_from(token_data.get("expires_in")),
        }
        if token_data.get("scope"):
            updates["scopes"] = _split_scopes(token_data["scope"])

        return await persist_refresh(self.store, connection, updates)

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
