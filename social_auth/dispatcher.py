"""
Post dispatcher.

Routes a post to the handler of each requested platform, loading the
user's stored connection first. ``post_to_all`` fans out concurrently and
always returns one ``PostResult`` per requested platform, in order.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import httpx

from .config import PublishSettings
from .errors import ConnectionNotFoundError, UnsupportedPlatformError
from .handlers import HANDLER_CLASSES, BaseHandler
from .storage.base import CredentialStore
from .types import Platform, PostOptions, PostResult
from .utils.logging import Timer, clear_publish_context, set_publish_context

logger = logging.getLogger(__name__)

PlatformName = Union[Platform, str]


def resolve_platform(platform: PlatformName) -> Platform:
    """
    Normalize a platform name to the enum.

    Raises:
        UnsupportedPlatformError: If the name is not a known platform
    """
    try:
        return Platform(platform)
    except ValueError:
        raise UnsupportedPlatformError(
            f"Platform {platform} is not supported",
            platform=str(platform),
        )


class PostDispatcher:
    """
    Publishes posts through per-platform handlers.

    Only platforms with a provider get a handler; anything else is
    reported as unsupported.
    """

    def __init__(
        self,
        store: CredentialStore,
        providers: Mapping[Platform, Any],
        settings: Optional[PublishSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.store = store
        self.settings = settings or PublishSettings()
        self.handlers: Dict[Platform, BaseHandler] = {}

        for platform, provider in providers.items():
            handler_class = HANDLER_CLASSES[Platform(platform)]
            self.handlers[Platform(platform)] = handler_class(
                provider,
                settings=self.settings,
                transport=transport,
            )

        logger.debug(f"Dispatcher ready for: {', '.join(p.value for p in self.handlers)}")

    @property
    def platforms(self) -> List[Platform]:
        return list(self.handlers)

    def get_handler(self, platform: PlatformName) -> BaseHandler:
        resolved = resolve_platform(platform)
        handler = self.handlers.get(resolved)
        if handler is None:
            raise UnsupportedPlatformError(
                f"Platform {resolved.value} is not supported or not configured",
                platform=resolved.value,
            )
        return handler

    async def post_to_platform(
        self,
        platform: PlatformName,
        user_id: str,
        options: PostOptions,
    ) -> PostResult:
        """
        Publish to a single platform.

        Raises:
            UnsupportedPlatformError: If the platform is unknown or not configured
            ConnectionNotFoundError: If the user has not connected the platform
        """
        handler = self.get_handler(platform)
        platform = handler.platform

        connection = await self.store.get_connection(user_id, platform)
        if connection is None:
            raise ConnectionNotFoundError(
                f"No {platform.value} connection found for user {user_id}",
                platform=platform.value,
            )

        set_publish_context(user_id=user_id, platform=platform)
        try:
            with Timer(f"{platform.value} publish", logger):
                return await handler.send_post(user_id, connection, options, self.store)
        except Exception as e:
            logger.exception(f"Unexpected error publishing to {platform.value} for user {user_id}")
            return PostResult.failure(platform.value, str(e) or type(e).__name__)
        finally:
            clear_publish_context()

    async def post_to_all(
        self,
        user_id: str,
        options: PostOptions,
        platforms: Optional[Iterable[PlatformName]] = None,
    ) -> List[PostResult]:
        """
        Publish to several platforms concurrently.

        Args:
            user_id: Owner of the connections
            options: Post content
            platforms: Platforms to publish to; defaults to every configured one

        Returns:
            One PostResult per requested platform, in request order
        """
        targets = list(platforms) if platforms is not None else self.platforms

        outcomes = await asyncio.gather(
            *(self.post_to_platform(platform, user_id, options) for platform in targets),
            return_exceptions=True,
        )

        results: List[PostResult] = []
        for platform, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                name = getattr(platform, "value", str(platform))
                logger.warning(f"Publishing to {name} failed for user {user_id}: {outcome}")
                results.append(PostResult.failure(name, str(outcome) or type(outcome).__name__))
            else:
                results.append(outcome)

        succeeded = sum(1 for result in results if result.success)
        logger.info(f"Published for user {user_id}: {succeeded}/{len(results)} platforms succeeded")
        return results
