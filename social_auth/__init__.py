"""
social-auth: connect user accounts to social platforms and publish to them.

Connections are stored per (user, platform) through a ``CredentialStore``;
``SocialAuth`` drives the connection lifecycle and fans posts out to every
connected platform, reporting one ``PostResult`` per platform.
"""

from .client import SocialAuth
from .config import Settings, get_settings, reload_settings
from .dispatcher import PostDispatcher
from .errors import (
    AuthenticationError,
    AuthFlowNotSupportedError,
    ConfigurationError,
    ConnectionNotFoundError,
    MediaError,
    OAuthStateError,
    PlatformAPIError,
    RateLimitError,
    RefreshTokenMissingError,
    SocialAuthError,
    UnsupportedPlatformError,
    ValidationError,
)
from .storage import CredentialStore, MemoryStore, RedisCredentialStore
from .types import (
    ConnectResult,
    Platform,
    PlatformConnection,
    PlatformCredentials,
    PostOptions,
    PostResult,
    ScheduledPost,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "PostDispatcher",
    "SocialAuth",
    # Configuration
    "Settings",
    "get_settings",
    "reload_settings",
    # Storage
    "CredentialStore",
    "MemoryStore",
    "RedisCredentialStore",
    # Types
    "ConnectResult",
    "Platform",
    "PlatformConnection",
    "PlatformCredentials",
    "PostOptions",
    "PostResult",
    "ScheduledPost",
    # Errors
    "AuthFlowNotSupportedError",
    "AuthenticationError",
    "ConfigurationError",
    "ConnectionNotFoundError",
    "MediaError",
    "OAuthStateError",
    "PlatformAPIError",
    "RateLimitError",
    "RefreshTokenMissingError",
    "SocialAuthError",
    "UnsupportedPlatformError",
    "ValidationError",
]
