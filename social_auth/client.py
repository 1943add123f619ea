"""
SocialAuth client.

The public entry point: connect and disconnect accounts, refresh their
credentials and publish posts to one or many platforms.

Usage:
    auth = SocialAuth(
        {"twitter": PlatformCredentials(client_id="...", client_secret="..."),
         "discord": PlatformCredentials()},
        store=MemoryStore(),
    )
    result = await auth.connect("twitter", "user-1", redirect_uri="https://app/cb")
    ...
    results = await auth.post_to_all("user-1", PostOptions(text="Hello"))
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from .config import PublishSettings, Settings, get_settings
from .connections import PROVIDER_CLASSES
from .dispatcher import PlatformName, PostDispatcher, resolve_platform
from .errors import ConnectionNotFoundError, UnsupportedPlatformError, ValidationError
from .storage import CredentialStore, MemoryStore, RedisCredentialStore
from .types import (
    ConnectResult,
    Platform,
    PlatformConnection,
    PlatformCredentials,
    PostOptions,
    PostResult,
)

logger = logging.getLogger(__name__)

# Platforms connected through an authorization redirect
OAUTH_PLATFORMS = frozenset({Platform.TWITTER, Platform.LINKEDIN, Platform.TIKTOK, Platform.THREADS})

PlatformConfig = Mapping[PlatformName, Union[PlatformCredentials, Dict[str, Any]]]


class SocialAuth:
    """
    Connection lifecycle and publishing across social platforms.

    Only platforms present in ``config`` are available; every operation on
    any other platform raises ``UnsupportedPlatformError``.
    """

    def __init__(
        self,
        config: PlatformConfig,
        store: Optional[CredentialStore] = None,
        settings: Optional[PublishSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.settings = settings or PublishSettings()
        self.providers: Dict[Platform, Any] = {}

        for name, credentials in config.items():
            platform = resolve_platform(name)
            if isinstance(credentials, dict):
                credentials = PlatformCredentials.model_validate(credentials)
            self.providers[platform] = PROVIDER_CLASSES[platform](
                self.store,
                credentials,
                transport=transport,
                timeout=self.settings.http_timeout_seconds,
            )

        self.dispatcher = PostDispatcher(
            self.store,
            self.providers,
            settings=self.settings,
            transport=transport,
        )
        logger.info(
            f"SocialAuth initialized with platforms: "
            f"{', '.join(sorted(p.value for p in self.providers)) or 'none'}"
        )

    @classmethod
    def from_settings(
        cls,
        store: Optional[CredentialStore] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SocialAuth":
        """
        Build a client from environment configuration.

        Without an explicit store, a Redis store is used when ``REDIS_URL``
        is set and an in-memory store otherwise.
        """
        settings = settings or get_settings()
        if store is None:
            if settings.redis.is_configured:
                store = RedisCredentialStore(
                    key_prefix=settings.redis.redis_key_prefix,
                    oauth_state_ttl_seconds=settings.redis.oauth_state_ttl_seconds,
                )
            else:
                store = MemoryStore(oauth_state_ttl_seconds=settings.redis.oauth_state_ttl_seconds)

        return cls(
            settings.platform_config(),
            store=store,
            settings=settings.publish,
            transport=transport,
        )

    @property
    def platforms(self) -> List[Platform]:
        """Configured platforms."""
        return list(self.providers)

    def get_provider(self, platform: PlatformName) -> Any:
        resolved = resolve_platform(platform)
        provider = self.providers.get(resolved)
        if provider is None:
            raise UnsupportedPlatformError(
                f"Platform {resolved.value} is not supported or not configured",
                platform=resolved.value,
            )
        return provider

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, platform: PlatformName, user_id: str, **options: Any) -> ConnectResult:
        """
        Start connecting an account.

        OAuth platforms need ``redirect_uri`` and return the authorization
        URL and state to send the user to. Credential platforms take their
        credentials as keyword arguments (``handle``/``password`` for
        Bluesky, ``api_key`` for Dev.to, ``webhook_url`` for Discord,
        ``token`` for GitHub) and return the stored connection.
        """
        provider = self.get_provider(platform)

        if provider.platform in OAUTH_PLATFORMS:
            redirect_uri = options.get("redirect_uri")
            if not redirect_uri:
                raise ValidationError(
                    f"redirect_uri is required to connect {provider.platform.value}",
                    platform=provider.platform.value,
                )
            request = await provider.initiate_auth(user_id, redirect_uri)
            return ConnectResult(auth_url=request.auth_url, state=request.state)

        connection = await provider.connect(user_id, **options)
        return ConnectResult(connection=connection)

    async def handle_callback(
        self,
        platform: PlatformName,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> PlatformConnection:
        """Complete an OAuth handshake and return the stored connection."""
        return await self.get_provider(platform).handle_callback(code, state, redirect_uri)

    async def disconnect(self, platform: PlatformName, user_id: str) -> None:
        """Remove a user's connection; disconnecting twice is harmless."""
        await self.get_provider(platform).disconnect(user_id)

    async def get_connections(self, user_id: str) -> List[PlatformConnection]:
        return await self.store.get_connections(user_id)

    async def get_connection(
        self,
        user_id: str,
        platform: PlatformName,
    ) -> Optional[PlatformConnection]:
        return await self.store.get_connection(user_id, resolve_platform(platform))

    async def refresh_token(self, platform: PlatformName, user_id: str) -> PlatformConnection:
        """
        Refresh a stored connection's credentials.

        Raises:
            ConnectionNotFoundError: If the user has not connected the platform
        """
        provider = self.get_provider(platform)
        connection = await self.store.get_connection(user_id, provider.platform)
        if connection is None:
            raise ConnectionNotFoundError(
                f"No {provider.platform.value} connection found for user {user_id}",
                platform=provider.platform.value,
            )
        return await provider.refresh_token(connection)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def post(self, platform: PlatformName, user_id: str, options: PostOptions) -> PostResult:
        return await self.dispatcher.post_to_platform(platform, user_id, options)

    async def post_to_all(
        self,
        user_id: str,
        options: PostOptions,
        platforms: Optional[List[PlatformName]] = None,
    ) -> List[PostResult]:
        return await self.dispatcher.post_to_all(user_id, options, platforms)
