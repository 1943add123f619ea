"""
Credential store contract.

The core never touches persistence directly: providers, handlers and the
dispatcher read and write connection records and pending OAuth handshakes
through an object satisfying ``CredentialStore``.
"""

from typing import Any, Dict, List, Optional, Protocol, Union, runtime_checkable

from ..types import OAuthState, Platform, PlatformConnection

PlatformKey = Union[Platform, str]


def platform_key(platform: PlatformKey) -> str:
    """Normalize a Platform or platform string to its storage key."""
    return Platform(platform).value


@runtime_checkable
class CredentialStore(Protocol):
    """Async persistence for connections and OAuth handshake state."""

    async def save_connection(
        self,
        user_id: str,
        platform: PlatformKey,
        connection: PlatformConnection,
    ) -> None:
        """Create or replace the connection for (user, platform)."""
        ...

    async def get_connection(
        self,
        user_id: str,
        platform: PlatformKey,
    ) -> Optional[PlatformConnection]:
        """Load the connection for (user, platform), or None."""
        ...

    async def update_connection(
        self,
        user_id: str,
        platform: PlatformKey,
        updates: Dict[str, Any],
    ) -> None:
        """Merge ``updates`` into an existing connection; no-op when absent."""
        ...

    async def delete_connection(self, user_id: str, platform: PlatformKey) -> None:
        """Remove the connection for (user, platform); idempotent."""
        ...

    async def get_connections(self, user_id: str) -> List[PlatformConnection]:
        """List every connection of a user."""
        ...

    async def save_oauth_state(self, state: str, data: OAuthState) -> None:
        """Persist a pending handshake under its state token."""
        ...

    async def get_oauth_state(self, state: str) -> Optional[OAuthState]:
        """Load a pending handshake, or None if unknown or expired."""
        ...

    async def delete_oauth_state(self, state: str) -> None:
        """Remove a pending handshake; idempotent."""
        ...
