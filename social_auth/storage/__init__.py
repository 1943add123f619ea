"""
Credential stores.
"""

from .base import CredentialStore, platform_key
from .memory import MemoryStore
from .redis_client import RedisClient, redis_client
from .redis_store import RedisCredentialStore

__all__ = [
    "CredentialStore",
    "MemoryStore",
    "RedisClient",
    "RedisCredentialStore",
    "platform_key",
    "redis_client",
]
