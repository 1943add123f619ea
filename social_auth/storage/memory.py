"""
In-memory credential store.

Suitable for tests, single-process deployments and as the fallback of the
Redis store. Records are deep-copied on the way in and out so callers never
share mutable state with the store.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from ..types import OAuthState, PlatformConnection, apply_updates, utcnow
from .base import PlatformKey, platform_key

logger = logging.getLogger(__name__)

DEFAULT_OAUTH_STATE_TTL = 600


class MemoryStore:
    """Dict-backed ``CredentialStore``."""

    def __init__(self, oauth_state_ttl_seconds: int = DEFAULT_OAUTH_STATE_TTL) -> None:
        self.oauth_state_ttl_seconds = oauth_state_ttl_seconds
        self._connections: Dict[Tuple[str, str], PlatformConnection] = {}
        self._oauth_states: Dict[str, OAuthState] = {}

    # =========================================================================
    # Connection Operations
    # =========================================================================

    async def save_connection(
        self,
        user_id: str,
        platform: PlatformKey,
        connection: PlatformConnection,
    ) -> None:
        key = (user_id, platform_key(platform))
        self._connections[key] = connection.model_copy(deep=True)
        logger.debug(f"Saved {key[1]} connection for user {user_id}")

    async def get_connection(
        self,
        user_id: str,
        platform: PlatformKey,
    ) -> Optional[PlatformConnection]:
        connection = self._connections.get((user_id, platform_key(platform)))
        return connection.model_copy(deep=True) if connection else None

    async def update_connection(
        self,
        user_id: str,
        platform: PlatformKey,
        updates: Dict[str, Any],
    ) -> None:
        key = (user_id, platform_key(platform))
        connection = self._connections.get(key)
        if connection is None:
            logger.warning(f"No {key[1]} connection for user {user_id} to update")
            return
        self._connections[key] = apply_updates(connection, updates)

    async def delete_connection(self, user_id: str, platform: PlatformKey) -> None:
        self._connections.pop((user_id, platform_key(platform)), None)

    async def get_connections(self, user_id: str) -> List[PlatformConnection]:
        return [
            connection.model_copy(deep=True)
            for (uid, _), connection in self._connections.items()
            if uid == user_id
        ]

    # =========================================================================
    # OAuth State Operations
    # =========================================================================

    async def save_oauth_state(self, state: str, data: OAuthState) -> None:
        self._oauth_states[state] = data.model_copy(deep=True)

    async def get_oauth_state(self, state: str) -> Optional[OAuthState]:
        data = self._oauth_states.get(state)
        if data is None:
            return None

        expires_at = data.created_at + timedelta(seconds=self.oauth_state_ttl_seconds)
        if utcnow() >= expires_at:
            logger.debug(f"OAuth state {state[:8]}... expired")
            self._oauth_states.pop(state, None)
            return None

        return data.model_copy(deep=True)

    async def delete_oauth_state(self, state: str) -> None:
        self._oauth_states.pop(state, None)

    def clear(self) -> None:
        """Drop every stored record."""
        self._connections.clear()
        self._oauth_states.clear()
