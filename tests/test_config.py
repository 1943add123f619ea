"""
Tests for environment configuration.
"""

import pytest

from social_auth.config import (
    PublishSettings,
    Settings,
    TikTokSettings,
    get_settings,
    reload_settings,
)
from social_auth.types import Platform, PlatformCredentials

CONFIG_ENV_VARS = (
    "TWITTER_CLIENT_ID", "TWITTER_CLIENT_SECRET",
    "LINKEDIN_CLIENT_ID", "LINKEDIN_CLIENT_SECRET",
    "TIKTOK_CLIENT_KEY", "TIKTOK_CLIENT_SECRET",
    "THREADS_CLIENT_ID", "THREADS_CLIENT_SECRET",
    "BLUESKY_ENABLED", "DEVTO_ENABLED", "DISCORD_ENABLED", "GITHUB_ENABLED",
)


class TestPlatformConfig:
    """Tests for Settings.platform_config."""

    def test_nothing_configured(self, monkeypatch):
        for name in CONFIG_ENV_VARS:
            monkeypatch.delenv(name, raising=False)

        assert Settings().platform_config() == {}

    def test_oauth_platform_needs_id_and_secret(self, monkeypatch):
        monkeypatch.setenv("TWITTER_CLIENT_ID", "tw-id")
        monkeypatch.delenv("TWITTER_CLIENT_SECRET", raising=False)
        assert Platform.TWITTER not in Settings().platform_config()

        monkeypatch.setenv("TWITTER_CLIENT_SECRET", "tw-secret")
        config = Settings().platform_config()

        assert config[Platform.TWITTER] == PlatformCredentials(
            client_id="tw-id",
            client_secret="tw-secret",
        )

    def test_tiktok_client_key(self, monkeypatch):
        monkeypatch.setenv("TIKTOK_CLIENT_KEY", "tt-key")
        monkeypatch.setenv("TIKTOK_CLIENT_SECRET", "tt-secret")

        credentials = TikTokSettings().credentials()

        assert credentials.client_id == "tt-key"
        assert credentials.is_complete

    def test_credential_platforms_enabled_by_flag(self, monkeypatch):
        monkeypatch.setenv("DISCORD_ENABLED", "true")
        monkeypatch.setenv("BLUESKY_ENABLED", "false")

        config = Settings().platform_config()

        assert config[Platform.DISCORD] == PlatformCredentials()
        assert Platform.BLUESKY not in config

    def test_secrets_hidden_from_repr_and_summary(self, monkeypatch):
        monkeypatch.setenv("LINKEDIN_CLIENT_ID", "li-id")
        monkeypatch.setenv("LINKEDIN_CLIENT_SECRET", "super-secret-value")

        settings = Settings()

        assert "super-secret-value" not in repr(settings.linkedin)
        assert "super-secret-value" not in str(settings.get_config_summary())
        assert "linkedin" in settings.get_config_summary()["platforms"]


class TestPublishSettings:
    """Tests for publish tuning defaults and overrides."""

    def test_defaults(self):
        settings = PublishSettings()

        assert settings.refresh_buffer_seconds == 300
        assert settings.threads_publish_delay_seconds == 30
        assert settings.bluesky_video_poll_interval == 1.0
        assert settings.bluesky_video_poll_timeout_seconds == 300
        assert settings.media_fetch_retries == 3
        assert settings.http_timeout_seconds == 30

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("THREADS_PUBLISH_DELAY_SECONDS", "5")
        assert PublishSettings().threads_publish_delay_seconds == 5

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            PublishSettings(threads_publish_delay_seconds=-1)


def test_settings_are_cached_until_reloaded(monkeypatch):
    first = reload_settings()
    assert get_settings() is first

    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    assert get_settings() is first

    reloaded = reload_settings()
    assert reloaded is not first
    assert reloaded.redis.is_configured

    monkeypatch.delenv("REDIS_URL")
    reload_settings()
