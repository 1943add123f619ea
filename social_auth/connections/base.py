"""
Connection provider contract and shared handshake helpers.

Providers do not inherit from a base class; each one implements the
``ConnectionProvider`` protocol and composes the helpers below for the parts
every platform shares (OAuth state bookkeeping, client-credential checks,
refresh persistence).
"""

import base64
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

from ..errors import (
    AuthFlowNotSupportedError,
    ConfigurationError,
    OAuthStateError,
)
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    OAuthState,
    Platform,
    PlatformConnection,
    PlatformCredentials,
    apply_updates,
    utcnow,
)
from ..utils.security import generate_state

logger = logging.getLogger(__name__)


@runtime_checkable
class ConnectionProvider(Protocol):
    """Per-platform connection lifecycle."""

    platform: Platform

    async def initiate_auth(self, user_id: str, redirect_uri: str) -> AuthorizationRequest:
        """Start a handshake and return the authorization URL and its state."""
        ...

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> PlatformConnection:
        """Complete a handshake and store the resulting connection."""
        ...

    async def refresh_token(self, connection: PlatformConnection) -> PlatformConnection:
        """Renew the connection's credentials and persist them."""
        ...

    async def disconnect(self, user_id: str) -> None:
        """Remove the user's stored connection."""
        ...


# -----------------------------------------------------------------------------
# Client Credentials
# -----------------------------------------------------------------------------


def require_client_credentials(
    platform: Platform,
    credentials: Optional[PlatformCredentials],
) -> Tuple[str, str]:
    """
    Return the (client_id, client_secret) pair for an OAuth platform.

    Raises:
        ConfigurationError: If either value is missing
    """
    if credentials is None or not credentials.is_complete:
        name = platform.value.capitalize()
        raise ConfigurationError(
            f"{name} client ID/secret not configured",
            platform=platform.value,
        )
    return credentials.client_id, credentials.client_secret


def basic_auth_header(client_id: str, client_secret: str) -> str:
    """Build an HTTP Basic ``Authorization`` header value."""
    credentials = f"{client_id}:{client_secret}"
    return f"Basic {base64.b64encode(credentials.encode()).decode()}"


def expires_at_from(expires_in: Any) -> Optional[datetime]:
    """Convert an ``expires_in`` seconds value into an absolute UTC time."""
    if expires_in in (None, ""):
        return None
    return utcnow() + timedelta(seconds=int(expires_in))


def flow_not_supported(platform: Platform, message: str) -> AuthFlowNotSupportedError:
    """Error for credential platforms asked to run an OAuth redirect flow."""
    return AuthFlowNotSupportedError(message, platform=platform.value)


# -----------------------------------------------------------------------------
# OAuth State
# -----------------------------------------------------------------------------


async def create_oauth_state(
    store: CredentialStore,
    platform: Platform,
    user_id: str,
    code_verifier: str = "",
) -> str:
    """
    Generate and persist a new handshake state.

    Returns:
        The opaque state token to embed in the authorization URL
    """
    state = generate_state()
    await store.save_oauth_state(
        state,
        OAuthState(
            uid=user_id,
            state=state,
            code_verifier=code_verifier,
            platform=platform,
        ),
    )
    logger.debug(f"Created {platform.value} OAuth state for user {user_id}")
    return state


async def consume_oauth_state(
    store: CredentialStore,
    platform: Platform,
    state: str,
) -> OAuthState:
    """
    Load a handshake state and delete it immediately.

    A state can be consumed once; a replayed or expired state raises.

    Raises:
        OAuthStateError: If the state is unknown, expired or belongs to
            another platform
    """
    stored = await store.get_oauth_state(state) if state else None
    if stored is None:
        raise OAuthStateError(
            "Invalid or expired state parameter",
            platform=platform.value,
        )

    await store.delete_oauth_state(state)

    if stored.platform is not None and Platform(stored.platform) != platform:
        raise OAuthStateError(
            "Invalid or expired state parameter",
            platform=platform.value,
        )

    return stored


# -----------------------------------------------------------------------------
# Connection Persistence
# -----------------------------------------------------------------------------


async def save_new_connection(
    store: CredentialStore,
    connection: PlatformConnection,
) -> PlatformConnection:
    """Store a freshly created connection under its owner."""
    await store.save_connection(connection.uid, connection.platform, connection)
    logger.info(f"Connected {connection.platform} for user {connection.uid}")
    return connection


async def persist_refresh(
    store: CredentialStore,
    connection: PlatformConnection,
    updates: Dict[str, Any],
) -> PlatformConnection:
    """
    Apply refreshed credentials to a connection and persist them.

    The refreshed record is always marked valid and freshly validated.
    """
    updates = {
        **updates,
        "is_valid": True,
        "needs_reconnection": False,
        "last_validated": utcnow(),
    }
    updated = apply_updates(connection, updates)
    await store.update_connection(connection.uid, connection.platform, updates)
    logger.debug(f"Refreshed {connection.platform} credentials for user {connection.uid}")
    return updated


async def mark_needs_reconnection(
    store: CredentialStore,
    connection: PlatformConnection,
) -> None:
    """Flag a connection whose credentials can no longer be renewed."""
    await store.update_connection(
        connection.uid,
        connection.platform,
        {"is_valid": False, "needs_reconnection": True},
    )
    logger.warning(
        f"Marked {connection.platform} connection for user {connection.uid} "
        f"as needing reconnection"
    )


async def remove_connection(
    store: CredentialStore,
    platform: Platform,
    user_id: str,
) -> None:
    """Delete a user's connection; deleting a missing one is a no-op."""
    await store.delete_connection(user_id, platform)
    logger.info(f"Disconnected {platform.value} for user {user_id}")
