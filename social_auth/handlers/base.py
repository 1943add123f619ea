"""
Platform handler contract and the shared publish flow.

Every handler follows the same credential lifecycle around its own
platform-specific publish step:

1. Proactive refresh when an OAuth token is expired or about to expire.
   A failed proactive refresh marks the connection for reconnection and
   raises ``AuthenticationError``.
2. Publish. On a credential failure that a proactive refresh did not already
   cover, refresh once and retry once.
3. Write validity back: success marks the connection valid, a credential
   failure marks it for reconnection, other failures leave it untouched.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple, runtime_checkable

import httpx

from ..config import PublishSettings
from ..errors import AuthenticationError, SocialAuthError
from ..storage.base import CredentialStore
from ..types import Platform, PlatformConnection, PostOptions, PostResult, utcnow
from ..utils.security import is_auth_error

logger = logging.getLogger(__name__)

# Failures a publish step is expected to produce; anything else is a bug and
# propagates to the dispatcher
PUBLISH_ERRORS = (SocialAuthError, httpx.HTTPError)

PublishStep = Callable[[Any], Awaitable[Dict[str, Any]]]


@runtime_checkable
class PlatformHandler(Protocol):
    """Per-platform publisher."""

    platform: Platform

    async def send_post(
        self,
        user_id: str,
        connection: PlatformConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        """Publish ``options`` with ``connection`` and report the outcome."""
        ...


def is_credential_failure(platform: Platform, err: BaseException) -> bool:
    """Check whether an error means the stored credential is unusable."""
    return isinstance(err, AuthenticationError) or is_auth_error(platform.value, err)


def needs_proactive_refresh(expires_at: Optional[datetime], buffer_seconds: int) -> bool:
    """
    Check whether a token should be refreshed before use.

    Tokens with no known expiry are refreshed, as are tokens expiring within
    ``buffer_seconds``.
    """
    if expires_at is None:
        return True
    return expires_at <= utcnow() + timedelta(seconds=buffer_seconds)


async def mark_valid(store: CredentialStore, user_id: str, platform: Platform) -> None:
    """Record a successful use of the connection."""
    await store.update_connection(
        user_id,
        platform,
        {"is_valid": True, "needs_reconnection": False, "last_validated": utcnow()},
    )


async def mark_invalid(store: CredentialStore, user_id: str, platform: Platform) -> None:
    """Record that the connection must be reconnected."""
    logger.warning(f"Marking {platform.value} connection for user {user_id} as invalid")
    await store.update_connection(
        user_id,
        platform,
        {"is_valid": False, "needs_reconnection": True},
    )


class BaseHandler:
    """
    Shared construction and publish flow for platform handlers.

    Subclasses set ``platform`` and ``display_name`` and implement
    ``send_post`` in terms of ``refresh_before_publish`` and
    ``publish_with_retry``.
    """

    platform: Platform
    display_name: str = ""

    def __init__(
        self,
        provider: Any,
        settings: Optional[PublishSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or PublishSettings()
        self.transport = transport

    @property
    def timeout(self) -> float:
        return self.settings.http_timeout_seconds

    async def refresh_before_publish(
        self,
        user_id: str,
        connection: PlatformConnection,
        store: CredentialStore,
    ) -> Tuple[PlatformConnection, bool]:
        """
        Refresh an OAuth token that is expired or close to expiry.

        Returns:
            The connection to publish with, and whether it was refreshed

        Raises:
            AuthenticationError: If the refresh fails; the connection is
                marked for reconnection first
        """
        expires_at = getattr(connection, "expires_at", None)
        if not needs_proactive_refresh(expires_at, self.settings.refresh_buffer_seconds):
            return connection, False

        logger.debug(f"Refreshing {self.platform.value} token for user {user_id} before publish")
        try:
            refreshed = await self.provider.refresh_token(connection)
        except PUBLISH_ERRORS as e:
            await mark_invalid(store, user_id, self.platform)
            raise AuthenticationError(
                f"{self.display_name} token refresh failed: {e}",
                platform=self.platform.value,
                status_code=getattr(e, "status_code", None),
            ) from e

        return refreshed, True

    async def publish_with_retry(
        self,
        user_id: str,
        connection: PlatformConnection,
        store: CredentialStore,
        publish: PublishStep,
        refreshed: bool = False,
    ) -> PostResult:
        """
        Run a publish step with at most one reactive refresh-and-retry.

        Args:
            user_id: Owner of the connection
            connection: Connection to publish with
            store: Credential store for validity write-back
            publish: Coroutine taking the connection and returning the
                platform identifiers of the new post
            refreshed: Whether the token was already refreshed for this call

        Returns:
            PostResult describing the outcome
        """
        name = self.display_name
        try:
            identifiers = await publish(connection)
        except PUBLISH_ERRORS as e:
            if not is_credential_failure(self.platform, e):
                logger.warning(f"{name} publish failed for user {user_id}: {e}")
                return PostResult.failure(self.platform.value, f"{name} API Error: {e}")

            if refreshed:
                await mark_invalid(store, user_id, self.platform)
                return PostResult.failure(self.platform.value, f"{name} API Error: {e}")

            logger.info(f"{name} rejected credentials for user {user_id}, refreshing and retrying")
            try:
                connection = await self.provider.refresh_token(connection)
            except PUBLISH_ERRORS as refresh_error:
                await mark_invalid(store, user_id, self.platform)
                return PostResult.failure(
                    self.platform.value,
                    f"{name} reactive refresh failed: {refresh_error}",
                )

            try:
                identifiers = await publish(connection)
            except PUBLISH_ERRORS as retry_error:
                if is_credential_failure(self.platform, retry_error):
                    await mark_invalid(store, user_id, self.platform)
                return PostResult.failure(
                    self.platform.value,
                    f"{name} API Error after refresh: {retry_error}",
                )

        await mark_valid(store, user_id, self.platform)
        logger.info(f"Published to {name} for user {user_id}: {identifiers}")
        return PostResult.ok(self.platform.value, **identifiers)
