"""
Centralized configuration management for social-auth.

This module provides a Pydantic Settings-based configuration system that:
- Loads platform client credentials from the environment or a .env file
- Enables credential-only platforms (Bluesky, Dev.to, Discord, GitHub) by flag
- Holds publish tuning (refresh buffer, Threads delay, polling, retries)
- Holds Redis store settings

Usage:
    from social_auth.config import get_settings

    settings = get_settings()
    client = SocialAuth(settings.platform_config(), store)
"""

from functools import lru_cache
from typing import Dict, Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import Platform, PlatformCredentials


def _secret(value: Optional[SecretStr]) -> Optional[str]:
    return value.get_secret_value() if value else None


# =============================================================================
# OAuth Platform Settings
# =============================================================================


class TwitterSettings(BaseSettings):
    """Twitter/X OAuth 2.0 client credentials."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    twitter_client_id: Optional[str] = Field(
        default=None,
        description="Twitter OAuth 2.0 client ID",
    )
    twitter_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="Twitter OAuth 2.0 client secret",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Twitter is configured."""
        return bool(self.twitter_client_id and self.twitter_client_secret)

    def credentials(self) -> PlatformCredentials:
        return PlatformCredentials(
            client_id=self.twitter_client_id,
            client_secret=_secret(self.twitter_client_secret),
        )


class LinkedInSettings(BaseSettings):
    """LinkedIn OAuth 2.0 client credentials."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    linkedin_client_id: Optional[str] = Field(
        default=None,
        description="LinkedIn OAuth client ID",
    )
    linkedin_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="LinkedIn OAuth client secret",
    )

    @property
    def is_configured(self) -> bool:
        """Check if LinkedIn is configured."""
        return bool(self.linkedin_client_id and self.linkedin_client_secret)

    def credentials(self) -> PlatformCredentials:
        return PlatformCredentials(
            client_id=self.linkedin_client_id,
            client_secret=_secret(self.linkedin_client_secret),
        )


class TikTokSettings(BaseSettings):
    """TikTok OAuth 2.0 client credentials (client key and secret)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tiktok_client_key: Optional[str] = Field(
        default=None,
        description="TikTok client key",
    )
    tiktok_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="TikTok client secret",
    )

    @property
    def is_configured(self) -> bool:
        """Check if TikTok is configured."""
        return bool(self.tiktok_client_key and self.tiktok_client_secret)

    def credentials(self) -> PlatformCredentials:
        return PlatformCredentials(
            client_key=self.tiktok_client_key,
            client_secret=_secret(self.tiktok_client_secret),
        )


class ThreadsSettings(BaseSettings):
    """Threads (Meta) OAuth client credentials."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    threads_client_id: Optional[str] = Field(
        default=None,
        description="Threads app ID",
    )
    threads_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="Threads app secret",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Threads is configured."""
        return bool(self.threads_client_id and self.threads_client_secret)

    def credentials(self) -> PlatformCredentials:
        return PlatformCredentials(
            client_id=self.threads_client_id,
            client_secret=_secret(self.threads_client_secret),
        )


# =============================================================================
# Credential Platform Settings
# =============================================================================


class CredentialPlatformSettings(BaseSettings):
    """Switches for platforms that authenticate with user-supplied credentials."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    bluesky_enabled: bool = Field(default=False, description="Enable Bluesky")
    devto_enabled: bool = Field(default=False, description="Enable Dev.to")
    discord_enabled: bool = Field(default=False, description="Enable Discord webhooks")
    github_enabled: bool = Field(default=False, description="Enable GitHub")

    @property
    def enabled_platforms(self) -> Dict[Platform, bool]:
        return {
            Platform.BLUESKY: self.bluesky_enabled,
            Platform.DEVTO: self.devto_enabled,
            Platform.DISCORD: self.discord_enabled,
            Platform.GITHUB: self.github_enabled,
        }


# =============================================================================
# Publish Settings
# =============================================================================


class PublishSettings(BaseSettings):
    """Tuning for refresh, media transfer and platform pacing."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    refresh_buffer_seconds: int = Field(
        default=300,
        ge=0,
        description="Refresh OAuth tokens expiring within this many seconds",
    )
    threads_publish_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Wait between Threads container creation and publish",
    )
    bluesky_video_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between Bluesky video job status polls",
    )
    bluesky_video_poll_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Give up on a Bluesky video job after this many seconds",
    )
    media_fetch_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts when downloading media hits a transport error",
    )
    media_fetch_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Linear backoff step between media download attempts",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        ge=1,
        le=600,
        description="Timeout in seconds for platform API requests",
    )


# =============================================================================
# Redis Settings
# =============================================================================


class RedisSettings(BaseSettings):
    """Configuration for the Redis credential store."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL",
    )
    redis_key_prefix: str = Field(
        default="social_auth",
        description="Prefix for every Redis key written by the store",
    )
    oauth_state_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="Lifetime of a pending OAuth handshake",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Redis is configured."""
        return bool(self.redis_url)


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration groups.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    twitter: TwitterSettings = Field(default_factory=TwitterSettings)
    linkedin: LinkedInSettings = Field(default_factory=LinkedInSettings)
    tiktok: TikTokSettings = Field(default_factory=TikTokSettings)
    threads: ThreadsSettings = Field(default_factory=ThreadsSettings)
    credential_platforms: CredentialPlatformSettings = Field(
        default_factory=CredentialPlatformSettings
    )
    publish: PublishSettings = Field(default_factory=PublishSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def platform_config(self) -> Dict[Platform, PlatformCredentials]:
        """
        Build the platform configuration mapping.

        OAuth platforms appear only with both client id and secret set;
        credential platforms appear (with empty credentials) when enabled.
        """
        config: Dict[Platform, PlatformCredentials] = {}

        oauth_groups = {
            Platform.TWITTER: self.twitter,
            Platform.LINKEDIN: self.linkedin,
            Platform.TIKTOK: self.tiktok,
            Platform.THREADS: self.threads,
        }
        for platform, group in oauth_groups.items():
            if group.is_configured:
                config[platform] = group.credentials()

        for platform, enabled in self.credential_platforms.enabled_platforms.items():
            if enabled:
                config[platform] = PlatformCredentials()

        return config

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        Returns configuration status WITHOUT exposing any secrets.
        """
        return {
            "platforms": sorted(p.value for p in self.platform_config()),
            "redis_configured": self.redis.is_configured,
            "refresh_buffer_seconds": self.publish.refresh_buffer_seconds,
            "threads_publish_delay_seconds": self.publish.threads_publish_delay_seconds,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the settings singleton.

    Uses lru_cache to ensure settings are only loaded once.

    Returns:
        Validated Settings instance
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    This clears the cache and returns fresh settings.
    Useful for testing or after environment changes.
    """
    get_settings.cache_clear()
    return get_settings()
