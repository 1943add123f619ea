"""
GitHub connection provider (personal access token).
"""

import logging
from typing import Optional

import httpx

from ..errors import AuthenticationError, ValidationError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    GitHubConnection,
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

GITHUB_USER_URL = "https://api.github.com/user"


class GitHubConnectionProvider:
    """GitHub personal-access-token connection lifecycle."""

    platform = Platform.GITHUB

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
            "GitHub uses token authentication. Use connect() instead.",
        )

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> GitHubConnection:
        raise flow_not_supported(self.platform, "GitHub does not use OAuth callbacks")

    async def _fetch_user(self, token: str) -> dict:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.get(
                GITHUB_USER_URL,
                headers={
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"Bearer {token}",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
            )

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Invalid token. Please check your GitHub Personal Access Token.",
                platform=self.platform.value,
                status_code=response.status_code,
            )
        raise_for_platform(self.platform.value, response, "GitHub token check")
        return response.json()

    async def connect(self, user_id: str, token: str) -> GitHubConnection:
        """Validate a personal access token and store the connection."""
        token = (token or "").strip()
        if not token:
            raise ValidationError("GitHub token is required", platform=self.platform.value)

        user = await self._fetch_user(token)
        connection = GitHubConnection(
            uid=user_id,
            token=token,
            username=user.get("login"),
            user_id=str(user["id"]) if user.get("id") is not None else None,
            avatar=user.get("avatar_url"),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: GitHubConnection) -> GitHubConnection:
        """Personal access tokens cannot be refreshed; re-validate the token."""
        user = await self._fetch_user(connection.token)
        return await persist_refresh(
            self.store,
            connection,
            {
                "username": user.get("login") or connection.username,
                "avatar": user.get("avatar_url") or connection.avatar,
            },
        )

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
