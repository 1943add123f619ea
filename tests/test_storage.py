"""
Tests for the credential stores.
"""

import json
from datetime import timedelta

import pytest

from conftest import USER_ID, FakeRedisClient
from social_auth.storage import CredentialStore, MemoryStore, RedisCredentialStore
from social_auth.types import OAuthState, Platform, TwitterConnection, utcnow


@pytest.fixture(params=["memory", "redis"])
def any_store(request, fake_redis):
    """Each shipped store, the Redis one backed by a fake client."""
    if request.param == "memory":
        return MemoryStore()
    return RedisCredentialStore(client=FakeRedisClient(fake_redis))


class TestConnections:
    """Connection CRUD behaviour shared by every store."""

    def test_stores_satisfy_protocol(self, any_store):
        assert isinstance(any_store, CredentialStore)

    @pytest.mark.asyncio
    async def test_save_then_get_round_trips(self, any_store, twitter_connection):
        await any_store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        loaded = await any_store.get_connection(USER_ID, "twitter")

        assert isinstance(loaded, TwitterConnection)
        assert loaded == twitter_connection
        assert loaded.expires_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_every_variant_round_trips(
        self,
        any_store,
        twitter_connection,
        linkedin_connection,
        bluesky_connection,
        tiktok_connection,
        devto_connection,
        threads_connection,
        discord_connection,
        github_connection,
    ):
        connections = [
            twitter_connection,
            linkedin_connection,
            bluesky_connection,
            tiktok_connection,
            devto_connection,
            threads_connection,
            discord_connection,
            github_connection,
        ]
        for connection in connections:
            await any_store.save_connection(USER_ID, connection.platform, connection)

        for connection in connections:
            assert await any_store.get_connection(USER_ID, connection.platform) == connection

        stored = await any_store.get_connections(USER_ID)
        assert sorted(c.platform for c in stored) == sorted(p.value for p in Platform)

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, any_store, twitter_connection):
        await any_store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        await any_store.update_connection(
            USER_ID,
            Platform.TWITTER,
            {"is_valid": False, "needs_reconnection": True},
        )
        loaded = await any_store.get_connection(USER_ID, Platform.TWITTER)

        assert loaded.is_valid is False
        assert loaded.needs_reconnection is True
        assert loaded.access_token == twitter_connection.access_token

    @pytest.mark.asyncio
    async def test_update_missing_connection_is_noop(self, any_store):
        await any_store.update_connection(USER_ID, Platform.TWITTER, {"is_valid": False})
        assert await any_store.get_connection(USER_ID, Platform.TWITTER) is None

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, any_store, twitter_connection):
        await any_store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        await any_store.delete_connection(USER_ID, Platform.TWITTER)
        await any_store.delete_connection(USER_ID, Platform.TWITTER)

        assert await any_store.get_connection(USER_ID, Platform.TWITTER) is None
        assert await any_store.get_connections(USER_ID) == []

    @pytest.mark.asyncio
    async def test_connections_are_scoped_per_user(self, any_store, twitter_connection):
        await any_store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        assert await any_store.get_connection("someone-else", Platform.TWITTER) is None
        assert await any_store.get_connections("someone-else") == []


class TestOAuthState:
    """OAuth state persistence."""

    @pytest.mark.asyncio
    async def test_save_get_delete(self, any_store):
        state = OAuthState(uid=USER_ID, state="abc", code_verifier="v" * 64, platform=Platform.TWITTER)

        await any_store.save_oauth_state("abc", state)
        loaded = await any_store.get_oauth_state("abc")
        await any_store.delete_oauth_state("abc")

        assert loaded == state
        assert await any_store.get_oauth_state("abc") is None

    @pytest.mark.asyncio
    async def test_memory_store_expires_state(self):
        store = MemoryStore(oauth_state_ttl_seconds=600)
        stale = OAuthState(
            uid=USER_ID,
            state="old",
            platform=Platform.LINKEDIN,
            created_at=utcnow() - timedelta(seconds=601),
        )

        await store.save_oauth_state("old", stale)

        assert await store.get_oauth_state("old") is None

    @pytest.mark.asyncio
    async def test_redis_store_sets_key_ttl(self, fake_redis):
        store = RedisCredentialStore(
            client=FakeRedisClient(fake_redis),
            key_prefix="test",
            oauth_state_ttl_seconds=120,
        )

        await store.save_oauth_state("xyz", OAuthState(uid=USER_ID, state="xyz"))

        assert fake_redis.expirations["test:oauth:xyz"] == 120


class TestMemoryStore:
    """Tests specific to MemoryStore."""

    @pytest.mark.asyncio
    async def test_returns_copies(self, store, twitter_connection):
        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        loaded = await store.get_connection(USER_ID, Platform.TWITTER)
        loaded.access_token = "mutated"

        reloaded = await store.get_connection(USER_ID, Platform.TWITTER)
        assert reloaded.access_token == "tw-access"

    @pytest.mark.asyncio
    async def test_clear(self, store, twitter_connection):
        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)
        store.clear()
        assert await store.get_connections(USER_ID) == []


class TestRedisStore:
    """Tests specific to RedisCredentialStore."""

    @pytest.mark.asyncio
    async def test_key_layout_and_iso_timestamps(self, fake_redis, twitter_connection):
        store = RedisCredentialStore(client=FakeRedisClient(fake_redis), key_prefix="test")

        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        document = json.loads(fake_redis.data[f"test:conn:{USER_ID}:twitter"])
        assert document["platform"] == "twitter"
        assert isinstance(document["expires_at"], str)
        assert fake_redis.sets[f"test:user_conns:{USER_ID}"] == {"twitter"}

    @pytest.mark.asyncio
    async def test_delete_removes_index_entry(self, fake_redis, twitter_connection):
        store = RedisCredentialStore(client=FakeRedisClient(fake_redis), key_prefix="test")
        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        await store.delete_connection(USER_ID, Platform.TWITTER)

        assert f"test:conn:{USER_ID}:twitter" not in fake_redis.data
        assert fake_redis.sets[f"test:user_conns:{USER_ID}"] == set()

    @pytest.mark.asyncio
    async def test_falls_back_to_memory_without_redis(self, twitter_connection):
        store = RedisCredentialStore(client=FakeRedisClient(None))

        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        assert store.using_fallback
        assert await store.get_connection(USER_ID, Platform.TWITTER) == twitter_connection

    @pytest.mark.asyncio
    async def test_falls_back_when_a_command_fails(self, fake_redis, twitter_connection):
        async def broken_set(*args, **kwargs):
            raise ConnectionError("redis went away")

        fake_redis.set = broken_set
        store = RedisCredentialStore(client=FakeRedisClient(fake_redis))

        await store.save_connection(USER_ID, Platform.TWITTER, twitter_connection)

        assert await store._fallback.get_connection(USER_ID, Platform.TWITTER) == twitter_connection
