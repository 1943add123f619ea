"""
Type definitions for connecting accounts and publishing posts.

Provides models for:
- Post input (``PostOptions``) and the uniform ``PostResult`` contract
- Handshake and connect results
- Per-platform client credentials
- Scheduled post bookkeeping (pure data, no scheduler)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator

from .connections import Platform, PlatformConnection


# -----------------------------------------------------------------------------
# Configuration Models
# -----------------------------------------------------------------------------


class PlatformCredentials(BaseModel):
    """
    Client credentials for one platform.

    An empty instance enables a platform that needs no app credentials
    (Bluesky, Dev.to, Discord, GitHub).
    """

    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("client_id", "client_key", "clientId", "clientKey"),
    )
    client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("client_secret", "clientSecret"),
    )

    @property
    def is_complete(self) -> bool:
        """Check if both the client id and secret are set."""
        return bool(self.client_id and self.client_secret)


# -----------------------------------------------------------------------------
# Handshake Models
# -----------------------------------------------------------------------------


class AuthorizationRequest(BaseModel):
    """Authorization URL and the state token embedded in it."""

    auth_url: str
    state: str


class ConnectResult(BaseModel):
    """
    Result of ``SocialAuth.connect``.

    OAuth platforms return ``auth_url``/``state``; credential platforms
    return the stored ``connection``.
    """

    auth_url: Optional[str] = None
    state: Optional[str] = None
    connection: Optional[PlatformConnection] = None


# -----------------------------------------------------------------------------
# Post Models
# -----------------------------------------------------------------------------


class PostOptions(BaseModel):
    """Content for a post fanned out to one or more platforms."""

    text: str = ""
    media_url: Optional[str] = None
    media_alt_text: Optional[str] = None
    project_name: Optional[str] = None
    post_data: Dict[str, Any] = Field(default_factory=dict)


class PostResult(BaseModel):
    """Uniform outcome of publishing to one platform."""

    platform: Optional[str] = None
    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def check_outcome(self) -> "PostResult":
        """Successful results carry identifiers, failures carry a diagnostic."""
        if self.success:
            if self.result is None:
                raise ValueError("A successful PostResult requires a result")
        else:
            if not self.error:
                raise ValueError("A failed PostResult requires an error message")
            if self.result is not None:
                raise ValueError("A failed PostResult cannot carry a result")
        return self

    @classmethod
    def ok(cls, platform: str, **identifiers: Any) -> "PostResult":
        """Build a successful result from platform identifiers."""
        return cls(platform=platform, success=True, result=dict(identifiers))

    @classmethod
    def failure(cls, platform: Optional[str], error: str) -> "PostResult":
        """Build a failed result."""
        return cls(platform=platform, success=False, error=error or "Unknown error")


# -----------------------------------------------------------------------------
# Scheduled Post Models
# -----------------------------------------------------------------------------


class ScheduledPostStatus(str, Enum):
    """Status of a scheduled post."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ScheduledPost(BaseModel):
    """A post queued for later publishing by an external scheduler."""

    user_id: str
    platforms: List[Platform]
    text: str
    media_url: Optional[str] = None
    media_alt_text: Optional[str] = None
    scheduled_time: datetime
    timezone: Optional[str] = None
    status: ScheduledPostStatus = ScheduledPostStatus.PENDING
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None
    result_id: Optional[str] = None  # Tweet ID, post ID, etc.
    result_uri: Optional[str] = None  # Bluesky post URI
    result_cid: Optional[str] = None  # Bluesky post CID
    media_file_path: Optional[str] = None

    def to_post_options(self, project_name: Optional[str] = None) -> PostOptions:
        """Build the post content for dispatching this scheduled post."""
        return PostOptions(
            text=self.text,
            media_url=self.media_url,
            media_alt_text=self.media_alt_text,
            project_name=project_name,
        )
