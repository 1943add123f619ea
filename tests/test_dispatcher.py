"""
Tests for the post dispatcher.
"""

from unittest.mock import AsyncMock, patch

import pytest

from conftest import DISCORD_WEBHOOK, USER_ID
from social_auth.connections import PROVIDER_CLASSES
from social_auth.dispatcher import PostDispatcher, resolve_platform
from social_auth.errors import ConnectionNotFoundError, UnsupportedPlatformError
from social_auth.types import Platform, PlatformCredentials, PostOptions


def make_dispatcher(store, transport, settings, *platforms):
    providers = {
        platform: PROVIDER_CLASSES[platform](store, PlatformCredentials(), transport=transport)
        for platform in platforms
    }
    return PostDispatcher(store, providers, settings=settings, transport=transport)


def test_resolve_platform_accepts_names_and_enums():
    assert resolve_platform("bluesky") is Platform.BLUESKY
    assert resolve_platform(Platform.DEVTO) is Platform.DEVTO

    with pytest.raises(UnsupportedPlatformError):
        resolve_platform("myspace")


class TestPostToPlatform:
    """Single-platform publishing."""

    @pytest.mark.asyncio
    async def test_unknown_platform_raises(self, store, transport, publish_settings):
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD)

        with pytest.raises(UnsupportedPlatformError):
            await dispatcher.post_to_platform("myspace", USER_ID, PostOptions(text="Hi"))

    @pytest.mark.asyncio
    async def test_unconfigured_platform_raises(self, store, transport, publish_settings):
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD)

        with pytest.raises(UnsupportedPlatformError):
            await dispatcher.post_to_platform(Platform.TWITTER, USER_ID, PostOptions(text="Hi"))

    @pytest.mark.asyncio
    async def test_missing_connection_raises(self, store, transport, publish_settings):
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD)

        with pytest.raises(ConnectionNotFoundError):
            await dispatcher.post_to_platform("discord", USER_ID, PostOptions(text="Hi"))

    @pytest.mark.asyncio
    async def test_publishes_with_stored_connection(
        self, store, router, transport, publish_settings, discord_connection
    ):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        router.add("POST", DISCORD_WEBHOOK, status_code=204)
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD)

        result = await dispatcher.post_to_platform("discord", USER_ID, PostOptions(text="Hi"))

        assert result.success
        assert result.platform == "discord"

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failure(
        self, store, transport, publish_settings, discord_connection
    ):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD)
        handler = dispatcher.get_handler(Platform.DISCORD)

        with patch.object(handler, "send_post", AsyncMock(side_effect=RuntimeError("boom"))):
            result = await dispatcher.post_to_platform("discord", USER_ID, PostOptions(text="Hi"))

        assert not result.success
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_validation_error_becomes_failure(
        self, store, transport, publish_settings, tiktok_connection
    ):
        await store.save_connection(USER_ID, Platform.TIKTOK, tiktok_connection)
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.TIKTOK)

        result = await dispatcher.post_to_platform("tiktok", USER_ID, PostOptions(text="No media"))

        assert not result.success
        assert "media_url" in result.error


class TestPostToAll:
    """Concurrent fan-out."""

    @pytest.mark.asyncio
    async def test_one_result_per_platform_in_order(
        self,
        store,
        router,
        transport,
        publish_settings,
        discord_connection,
        devto_connection,
    ):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        await store.save_connection(USER_ID, Platform.DEVTO, devto_connection)
        router.add("POST", DISCORD_WEBHOOK, status_code=204)
        router.add(
            "POST",
            "https://dev.to/api/articles",
            status_code=201,
            json={"id": 7, "url": "https://dev.to/x/hi-7", "title": "Hi"},
        )
        dispatcher = make_dispatcher(
            store,
            transport,
            publish_settings,
            Platform.DISCORD,
            Platform.GITHUB,
            Platform.DEVTO,
        )

        results = await dispatcher.post_to_all(
            USER_ID,
            PostOptions(text="Hi"),
            ["discord", "github", "devto"],
        )

        assert [r.platform for r in results] == ["discord", "github", "devto"]
        assert [r.success for r in results] == [True, False, True]
        assert "No github connection" in results[1].error
        assert results[2].result["id"] == "7"

    @pytest.mark.asyncio
    async def test_failures_do_not_cancel_siblings(
        self, store, router, transport, publish_settings, discord_connection, github_connection
    ):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        await store.save_connection(USER_ID, Platform.GITHUB, github_connection)
        router.add("POST", DISCORD_WEBHOOK, status_code=204)
        dispatcher = make_dispatcher(
            store,
            transport,
            publish_settings,
            Platform.GITHUB,
            Platform.DISCORD,
        )

        results = await dispatcher.post_to_all(USER_ID, PostOptions(text="Hi"), ["github", "myspace", "discord"])

        assert len(results) == 3
        assert not results[0].success
        assert results[1].platform == "myspace"
        assert "not supported" in results[1].error
        assert results[2].success

    @pytest.mark.asyncio
    async def test_defaults_to_every_configured_platform(
        self, store, router, transport, publish_settings, discord_connection
    ):
        await store.save_connection(USER_ID, Platform.DISCORD, discord_connection)
        router.add("POST", DISCORD_WEBHOOK, status_code=204)
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD, Platform.DEVTO)

        results = await dispatcher.post_to_all(USER_ID, PostOptions(text="Hi"))

        assert [r.platform for r in results] == ["discord", "devto"]
        assert results[0].success
        assert not results[1].success

    @pytest.mark.asyncio
    async def test_empty_platform_list(self, store, transport, publish_settings):
        dispatcher = make_dispatcher(store, transport, publish_settings, Platform.DISCORD)

        assert await dispatcher.post_to_all(USER_ID, PostOptions(text="Hi"), []) == []
