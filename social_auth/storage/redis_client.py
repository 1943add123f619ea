"""
Async Redis client for the credential store.

Provides a lazily connected client with health checking and graceful
degradation: when Redis cannot be reached ``get_client`` returns None and
the store falls back to memory.
"""

import logging
from typing import Optional

import redis.asyncio as redis

from ..config import get_settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Async Redis client with connection management.

    A failed connection attempt is not retried on every call; use
    ``reconnect`` to try again.
    """

    def __init__(self, redis_url: Optional[str] = None) -> None:
        self._redis_url = redis_url
        self._client: Optional[redis.Redis] = None
        self._is_available: bool = False
        self._connection_error: Optional[str] = None
        self._attempted: bool = False

    @property
    def redis_url(self) -> Optional[str]:
        """Configured URL, falling back to REDIS_URL from settings."""
        return self._redis_url or get_settings().redis.redis_url

    async def get_client(self) -> Optional[redis.Redis]:
        """
        Get or create the Redis client.

        Returns:
            Redis client if available, None if not configured or unreachable.
        """
        if self._client is not None or self._attempted:
            return self._client

        self._attempted = True
        url = self.redis_url
        if not url:
            self._connection_error = "REDIS_URL not configured"
            logger.debug("Redis not configured, credential store will use memory")
            return None

        try:
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=5.0,
                socket_timeout=5.0,
                retry_on_timeout=True,
            )
            await client.ping()
            self._client = client
            self._is_available = True
            self._connection_error = None
            logger.info("Redis connection established successfully")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            self._connection_error = f"Redis connection failed: {e}"
            logger.warning(self._connection_error)
            self._is_available = False
            self._client = None

        return self._client

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis connection: {e}")
            finally:
                self._client = None
                self._is_available = False

    async def health_check(self) -> dict:
        """
        Check Redis connection health.

        Returns:
            Dictionary with health status information.
        """
        client = await self.get_client()
        if client is None:
            return {
                "status": "unavailable",
                "connected": False,
                "error": self._connection_error or "Redis not configured",
            }

        try:
            await client.ping()
        except redis.RedisError as e:
            self._is_available = False
            self._connection_error = str(e)
            return {
                "status": "unhealthy",
                "connected": False,
                "error": f"Connection error: {e}",
            }

        return {"status": "healthy", "connected": True}

    @property
    def is_available(self) -> bool:
        """Check if Redis is currently available."""
        return self._is_available

    async def reconnect(self) -> bool:
        """
        Attempt to reconnect to Redis.

        Returns:
            True if reconnection successful, False otherwise.
        """
        await self.close()
        self._attempted = False
        client = await self.get_client()
        return client is not None


# Singleton instance
redis_client = RedisClient()
