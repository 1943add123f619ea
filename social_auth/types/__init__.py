"""
Type definitions for social-auth.
"""

from .connections import (
    BlueskyConnection,
    ConnectionBase,
    DevtoConnection,
    DiscordConnection,
    GitHubConnection,
    LinkedInConnection,
    OAuthState,
    Platform,
    PlatformConnection,
    TikTokConnection,
    ThreadsConnection,
    Timestamp,
    TwitterConnection,
    apply_updates,
    connection_adapter,
    parse_connection,
    utcnow,
)
from .social import (
    AuthorizationRequest,
    ConnectResult,
    PlatformCredentials,
    PostOptions,
    PostResult,
    ScheduledPost,
    ScheduledPostStatus,
)

__all__ = [
    # Connection types
    "BlueskyConnection",
    "ConnectionBase",
    "DevtoConnection",
    "DiscordConnection",
    "GitHubConnection",
    "LinkedInConnection",
    "OAuthState",
    "Platform",
    "PlatformConnection",
    "TikTokConnection",
    "ThreadsConnection",
    "Timestamp",
    "TwitterConnection",
    "apply_updates",
    "connection_adapter",
    "parse_connection",
    "utcnow",
    # Post and handshake types
    "AuthorizationRequest",
    "ConnectResult",
    "PlatformCredentials",
    "PostOptions",
    "PostResult",
    "ScheduledPost",
    "ScheduledPostStatus",
]
