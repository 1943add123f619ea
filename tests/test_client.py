"""
Tests for the SocialAuth client facade.
"""

from urllib.parse import parse_qs, urlparse

import pytest

from conftest import DISCORD_WEBHOOK, USER_ID
from social_auth import SocialAuth
from social_auth.config import Settings
from social_auth.errors import (
    ConnectionNotFoundError,
    UnsupportedPlatformError,
    ValidationError,
)
from social_auth.storage import MemoryStore, RedisCredentialStore
from social_auth.types import DiscordConnection, Platform, PlatformCredentials, PostOptions


@pytest.fixture
def auth(store, transport, publish_settings):
    """Client configured for Twitter, Discord and GitHub."""
    return SocialAuth(
        {
            "twitter": {"client_id": "tw-id", "client_secret": "tw-secret"},
            Platform.DISCORD: PlatformCredentials(),
            "github": PlatformCredentials(),
        },
        store=store,
        settings=publish_settings,
        transport=transport,
    )


def test_configured_platforms(auth):
    assert set(auth.platforms) == {Platform.TWITTER, Platform.DISCORD, Platform.GITHUB}
    assert auth.get_provider("twitter").credentials.client_id == "tw-id"


def test_unknown_platform_in_config_raises():
    with pytest.raises(UnsupportedPlatformError):
        SocialAuth({"myspace": PlatformCredentials()})


class TestConnect:
    """Connecting accounts."""

    @pytest.mark.asyncio
    async def test_oauth_platform_returns_authorization_url(self, auth, store):
        result = await auth.connect("twitter", USER_ID, redirect_uri="https://app.example.com/cb")

        assert result.connection is None
        query = parse_qs(urlparse(result.auth_url).query)
        assert query["state"] == [result.state]
        assert query["redirect_uri"] == ["https://app.example.com/cb"]

        stored = await store.get_oauth_state(result.state)
        assert stored.uid == USER_ID

    @pytest.mark.asyncio
    async def test_oauth_platform_requires_redirect_uri(self, auth):
        with pytest.raises(ValidationError):
            await auth.connect("twitter", USER_ID)

    @pytest.mark.asyncio
    async def test_credential_platform_returns_connection(self, auth, router):
        router.add("GET", DISCORD_WEBHOOK, json={"id": "123456", "channel_id": "chan-1", "guild_id": "guild-1"})

        result = await auth.connect("discord", USER_ID, webhook_url=DISCORD_WEBHOOK)

        assert result.auth_url is None
        assert isinstance(result.connection, DiscordConnection)
        assert result.connection.channel_name == "chan-1"
        assert await auth.get_connection(USER_ID, "discord") == result.connection

    @pytest.mark.asyncio
    async def test_unconfigured_platform_raises(self, auth):
        with pytest.raises(UnsupportedPlatformError):
            await auth.connect("linkedin", USER_ID, redirect_uri="https://app.example.com/cb")


class TestConnectionManagement:
    """Listing, refreshing and removing connections."""

    @pytest.mark.asyncio
    async def test_get_connections(self, auth, store, discord_connection, github_connection):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        await store.save_connection(USER_ID, Platform.GITHUB, github_connection)

        connections = await auth.get_connections(USER_ID)

        assert sorted(c.platform for c in connections) == ["discord", "github"]

    @pytest.mark.asyncio
    async def test_disconnect_removes_connection(self, auth, store, discord_connection):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)

        await auth.disconnect("discord", USER_ID)
        await auth.disconnect("discord", USER_ID)

        assert await auth.get_connection(USER_ID, "discord") is None

    @pytest.mark.asyncio
    async def test_refresh_without_connection_raises(self, auth):
        with pytest.raises(ConnectionNotFoundError):
            await auth.refresh_token("twitter", USER_ID)

    @pytest.mark.asyncio
    async def test_refresh_updates_stored_tokens(self, auth, store, router, twitter_connection):
        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)
        router.add(
            "POST",
            "https://api.twitter.com/2/oauth2/token",
            json={"access_token": "tw-new", "refresh_token": "tw-refresh-2", "expires_in": 7200},
        )

        refreshed = await auth.refresh_token("twitter", USER_ID)

        assert refreshed.access_token == "tw-new"
        stored = await auth.get_connection(USER_ID, Platform.TWITTER)
        assert stored.access_token == "tw-new"
        assert stored.refresh_token == "tw-refresh-2"


class TestPublishing:
    """Publishing through the client."""

    @pytest.mark.asyncio
    async def test_post(self, auth, store, router, discord_connection):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        router.add("POST", DISCORD_WEBHOOK, status_code=204)

        result = await auth.post("discord", USER_ID, PostOptions(text="Hello"))

        assert result.success

    @pytest.mark.asyncio
    async def test_post_to_all(self, auth, store, router, discord_connection, github_connection):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        await store.save_connection(USER_ID, Platform.GITHUB, github_connection)
        router.add("POST", DISCORD_WEBHOOK, status_code=204)

        results = await auth.post_to_all(USER_ID, PostOptions(text="Hello"), ["discord", "github"])

        assert [r.success for r in results] == [True, False]


class TestFromSettings:
    """Building a client from environment configuration."""

    def test_memory_store_without_redis(self, monkeypatch):
        monkeypatch.delenv("REDIS_URL", raising=False)
        monkeypatch.setenv("DISCORD_ENABLED", "true")
        monkeypatch.setenv("TWITTER_CLIENT_ID", "tw-id")
        monkeypatch.setenv("TWITTER_CLIENT_SECRET", "tw-secret")

        auth = SocialAuth.from_settings(settings=Settings())

        assert isinstance(auth.store, MemoryStore)
        assert Platform.DISCORD in auth.platforms
        assert Platform.TWITTER in auth.platforms

    def test_redis_store_when_configured(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")

        auth = SocialAuth.from_settings(settings=Settings())

        assert isinstance(auth.store, RedisCredentialStore)

    def test_explicit_store_wins(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
        store = MemoryStore()

        auth = SocialAuth.from_settings(store=store, settings=Settings())

        assert auth.store is store
