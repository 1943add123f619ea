"""
Connection records for every supported platform.

Provides:
- The ``Platform`` identifier enum
- One connection model per platform, joined into the ``PlatformConnection``
  tagged union (discriminated on ``platform``)
- The ephemeral ``OAuthState`` handshake record
- ``Timestamp``, the timezone-aware datetime type used by every record
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter


class Platform(str, Enum):
    """Supported platform identifiers."""

    TWITTER = "twitter"
    LINKEDIN = "linkedin"
    BLUESKY = "bluesky"
    TIKTOK = "tiktok"
    DEVTO = "devto"
    THREADS = "threads"
    DISCORD = "discord"
    GITHUB = "github"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _ensure_utc(value: datetime) -> datetime:
    # Naive values coming back from a store are assumed to be UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Timestamp = Annotated[datetime, AfterValidator(_ensure_utc)]


# -----------------------------------------------------------------------------
# Connection Models
# -----------------------------------------------------------------------------


class ConnectionBase(BaseModel):
    """Fields shared by every platform connection."""

    model_config = ConfigDict(use_enum_values=True)

    uid: str
    is_valid: bool = True
    needs_reconnection: bool = False
    last_validated: Optional[Timestamp] = None


class TwitterConnection(ConnectionBase):
    """Twitter/X connection (OAuth 2.0 with PKCE)."""

    platform: Literal["twitter"] = "twitter"
    twitter_user_id: str
    screen_name: str
    auth_version: Literal["oauth2"] = "oauth2"
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[Timestamp] = None
    scopes: List[str] = Field(default_factory=list)


class LinkedInConnection(ConnectionBase):
    """LinkedIn connection (OAuth 2.0)."""

    platform: Literal["linkedin"] = "linkedin"
    linkedin_user_id: str
    auth_version: Literal["oauth2"] = "oauth2"
    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    expires_at: Optional[Timestamp] = None


class BlueskyConnection(ConnectionBase):
    """Bluesky connection (handle/password session)."""

    platform: Literal["bluesky"] = "bluesky"
    handle: str
    did: str
    access_jwt: str
    refresh_jwt: str
    service_endpoint: Optional[str] = None


class TikTokConnection(ConnectionBase):
    """TikTok connection (OAuth 2.0 with PKCE)."""

    platform: Literal["tiktok"] = "tiktok"
    tiktok_user_id: str
    display_name: Optional[str] = None
    auth_version: Literal["oauth2"] = "oauth2"
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[Timestamp] = None
    scopes: List[str] = Field(default_factory=list)


class DevtoConnection(ConnectionBase):
    """Dev.to connection (API key)."""

    platform: Literal["devto"] = "devto"
    api_key: str
    username: Optional[str] = None


class ThreadsConnection(ConnectionBase):
    """Threads connection (OAuth 2.0, long-lived token)."""

    platform: Literal["threads"] = "threads"
    threads_user_id: str
    access_token: str
    expires_at: Optional[Timestamp] = None


class DiscordConnection(ConnectionBase):
    """Discord connection (channel webhook)."""

    platform: Literal["discord"] = "discord"
    webhook_url: str
    webhook_id: Optional[str] = None
    webhook_token: Optional[str] = None
    channel_name: Optional[str] = None
    guild_name: Optional[str] = None


class GitHubConnection(ConnectionBase):
    """GitHub connection (personal access token)."""

    platform: Literal["github"] = "github"
    token: str
    username: Optional[str] = None
    user_id: Optional[str] = None
    avatar: Optional[str] = None


PlatformConnection = Annotated[
    Union[
        TwitterConnection,
        LinkedInConnection,
        BlueskyConnection,
        TikTokConnection,
        DevtoConnection,
        ThreadsConnection,
        DiscordConnection,
        GitHubConnection,
    ],
    Field(discriminator="platform"),
]

connection_adapter: TypeAdapter = TypeAdapter(PlatformConnection)


def parse_connection(data: Dict[str, Any]) -> PlatformConnection:
    """Build the matching connection variant from a stored mapping."""
    return connection_adapter.validate_python(data)


def apply_updates(
    connection: PlatformConnection,
    updates: Dict[str, Any],
) -> PlatformConnection:
    """
    Return a validated copy of ``connection`` with ``updates`` merged in.

    The ``platform`` tag cannot change through an update.
    """
    data = connection.model_dump()
    data.update({k: v for k, v in updates.items() if k != "platform"})
    return parse_connection(data)


# -----------------------------------------------------------------------------
# OAuth Handshake State
# -----------------------------------------------------------------------------


class OAuthState(BaseModel):
    """State kept between authorization redirect and callback."""

    uid: str
    state: str
    code_verifier: str = ""
    platform: Optional[Platform] = None
    created_at: Timestamp = Field(default_factory=utcnow)
