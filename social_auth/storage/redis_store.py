"""
Credential store with Redis backend and in-memory fallback.

Layout:
- ``{prefix}:conn:{user}:{platform}`` JSON connection document
- ``{prefix}:user_conns:{user}`` set of the user's connected platforms
- ``{prefix}:oauth:{state}`` JSON handshake document with a TTL

Timestamps are stored as ISO-8601 strings and parsed back into aware
datetimes by the connection models.
"""

import logging
from typing import Any, Dict, List, Optional

from ..types import (
    OAuthState,
    PlatformConnection,
    apply_updates,
    connection_adapter,
)
from .base import PlatformKey, platform_key
from .memory import DEFAULT_OAUTH_STATE_TTL, MemoryStore
from .redis_client import RedisClient, redis_client

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "social_auth"


class RedisCredentialStore:
    """
    Redis-backed ``CredentialStore`` with fallback to memory.

    When Redis is unavailable (or a command fails) the operation is served by
    an embedded ``MemoryStore`` and a warning is logged.
    """

    def __init__(
        self,
        client: Optional[RedisClient] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        oauth_state_ttl_seconds: int = DEFAULT_OAUTH_STATE_TTL,
    ) -> None:
        self._client = client or redis_client
        self.key_prefix = key_prefix
        self.oauth_state_ttl_seconds = oauth_state_ttl_seconds
        self._fallback = MemoryStore(oauth_state_ttl_seconds=oauth_state_ttl_seconds)
        self._using_fallback: bool = False

    async def _get_redis(self):
        """Get Redis client, returns None if unavailable."""
        client = await self._client.get_client()
        self._using_fallback = client is None
        return client

    @property
    def using_fallback(self) -> bool:
        """Check if currently using in-memory fallback."""
        return self._using_fallback

    def _connection_key(self, user_id: str, platform: str) -> str:
        return f"{self.key_prefix}:conn:{user_id}:{platform}"

    def _user_index_key(self, user_id: str) -> str:
        return f"{self.key_prefix}:user_conns:{user_id}"

    def _oauth_key(self, state: str) -> str:
        return f"{self.key_prefix}:oauth:{state}"

    # =========================================================================
    # Connection Operations
    # =========================================================================

    async def save_connection(
        self,
        user_id: str,
        platform: PlatformKey,
        connection: PlatformConnection,
    ) -> None:
        name = platform_key(platform)
        redis = await self._get_redis()

        if redis:
            try:
                await redis.set(
                    self._connection_key(user_id, name),
                    connection.model_dump_json(),
                )
                await redis.sadd(self._user_index_key(user_id), name)
                logger.debug(f"Saved {name} connection for user {user_id} to Redis")
                return
            except Exception as e:
                logger.warning(f"Redis save_connection error: {e}, falling back to memory")

        await self._fallback.save_connection(user_id, name, connection)

    async def get_connection(
        self,
        user_id: str,
        platform: PlatformKey,
    ) -> Optional[PlatformConnection]:
        name = platform_key(platform)
        redis = await self._get_redis()

        if redis:
            try:
                data = await redis.get(self._connection_key(user_id, name))
                if data:
                    return connection_adapter.validate_json(data)
                return None
            except Exception as e:
                logger.warning(f"Redis get_connection error: {e}, falling back to memory")

        return await self._fallback.get_connection(user_id, name)

    async def update_connection(
        self,
        user_id: str,
        platform: PlatformKey,
        updates: Dict[str, Any],
    ) -> None:
        name = platform_key(platform)
        connection = await self.get_connection(user_id, name)
        if connection is None:
            logger.warning(f"No {name} connection for user {user_id} to update")
            return

        await self.save_connection(user_id, name, apply_updates(connection, updates))

    async def delete_connection(self, user_id: str, platform: PlatformKey) -> None:
        name = platform_key(platform)
        redis = await self._get_redis()

        if redis:
            try:
                await redis.delete(self._connection_key(user_id, name))
                await redis.srem(self._user_index_key(user_id), name)
                logger.debug(f"Deleted {name} connection for user {user_id} from Redis")
                return
            except Exception as e:
                logger.warning(f"Redis delete_connection error: {e}, falling back to memory")

        await self._fallback.delete_connection(user_id, name)

    async def get_connections(self, user_id: str) -> List[PlatformConnection]:
        redis = await self._get_redis()

        if redis:
            try:
                platforms = await redis.smembers(self._user_index_key(user_id))
                connections = []
                for name in sorted(platforms):
                    data = await redis.get(self._connection_key(user_id, name))
                    if data:
                        connections.append(connection_adapter.validate_json(data))
                return connections
            except Exception as e:
                logger.warning(f"Redis get_connections error: {e}, falling back to memory")

        return await self._fallback.get_connections(user_id)

    # =========================================================================
    # OAuth State Operations
    # =========================================================================

    async def save_oauth_state(self, state: str, data: OAuthState) -> None:
        redis = await self._get_redis()

        if redis:
            try:
                await redis.set(
                    self._oauth_key(state),
                    data.model_dump_json(),
                    ex=self.oauth_state_ttl_seconds,
                )
                return
            except Exception as e:
                logger.warning(f"Redis save_oauth_state error: {e}, falling back to memory")

        await self._fallback.save_oauth_state(state, data)

    async def get_oauth_state(self, state: str) -> Optional[OAuthState]:
        redis = await self._get_redis()

        if redis:
            try:
                data = await redis.get(self._oauth_key(state))
                return OAuthState.model_validate_json(data) if data else None
            except Exception as e:
                logger.warning(f"Redis get_oauth_state error: {e}, falling back to memory")

        return await self._fallback.get_oauth_state(state)

    async def delete_oauth_state(self, state: str) -> None:
        redis = await self._get_redis()

        if redis:
            try:
                await redis.delete(self._oauth_key(state))
                return
            except Exception as e:
                logger.warning(f"Redis delete_oauth_state error: {e}, falling back to memory")

        await self._fallback.delete_oauth_state(state)
