"""
Pytest configuration and shared fixtures for social-auth tests.

This module provides common fixtures used across all test files:
- An in-memory credential store
- A route-table ``httpx.MockTransport`` standing in for platform APIs
- A fake async Redis client
- Sample connections for every platform
"""

import json
import os
import sys
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import jwt
import pytest

# Environment setup before any imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"

# Ensure project root is in path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from social_auth.config import PublishSettings
from social_auth.storage import MemoryStore
from social_auth.types import (
    BlueskyConnection,
    DevtoConnection,
    DiscordConnection,
    GitHubConnection,
    LinkedInConnection,
    PlatformCredentials,
    ThreadsConnection,
    TikTokConnection,
    TwitterConnection,
    utcnow,
)

USER_ID = "user-123"
DISCORD_WEBHOOK = "https://discord.com/api/webhooks/123456/abc-TOKEN_xyz"


# =============================================================================
# Mock platform APIs
# =============================================================================


RouteHandler = Callable[[httpx.Request], httpx.Response]


class MockRouter:
    """
    Route table for ``httpx.MockTransport``.

    Routes match on method plus scheme/host/path (query strings ignored).
    Registering the same route several times queues the responses; the
    last one is repeated once the queue is drained. Every request is kept
    in ``requests`` for assertions.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[RouteHandler]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        json: Any = None,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if json is not None:
                return httpx.Response(status_code, json=json, headers=headers)
            return httpx.Response(status_code, content=content, headers=headers)

        self.add_callback(method, url, respond)

    def add_callback(self, method: str, url: str, handler: RouteHandler) -> None:
        self.routes.setdefault((method.upper(), url), []).append(handler)

    def calls(self, method: str, url: str) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method.upper() and _route_url(request) == url
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)

        handlers = self.routes.get((request.method, _route_url(request)))
        if not handlers:
            return httpx.Response(404, text=f"No route for {request.method} {request.url}")
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def _route_url(request: httpx.Request) -> str:
    url = request.url
    return f"{url.scheme}://{url.host}{url.path}"


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8"))


def make_jwt(expires_in: int) -> str:
    """HS256 JWT whose exp claim is `expires_in` seconds from now."""
    exp = int(utcnow().timestamp()) + expires_in
    return jwt.encode({"sub": "did:plc:example", "exp": exp}, "social-auth-test-signing-secret-0123456789", algorithm="HS256")


@pytest.fixture
def router():
    """Route table backing the mock transport."""
    return MockRouter()


@pytest.fixture
def transport(router):
    """``httpx.MockTransport`` serving the router's routes."""
    return router.transport


# =============================================================================
# Storage
# =============================================================================


class FakeRedis:
    """The subset of ``redis.asyncio.Redis`` the credential store uses."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.sets: Dict[str, set] = {}
        self.expirations: Dict[str, int] = {}

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.data[key] = value
        if ex is not None:
            self.expirations[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += int(self.data.pop(key, None) is not None)
            self.expirations.pop(key, None)
        return removed

    async def sadd(self, key: str, *members: str) -> int:
        self.sets.setdefault(key, set()).update(members)
        return len(members)

    async def srem(self, key: str, *members: str) -> int:
        self.sets.setdefault(key, set()).difference_update(members)
        return len(members)

    async def smembers(self, key: str) -> set:
        return set(self.sets.get(key, set()))


class FakeRedisClient:
    """Stands in for ``RedisClient``; ``None`` simulates Redis being down."""

    def __init__(self, redis: Optional[FakeRedis] = None) -> None:
        self.redis = redis

    async def get_client(self) -> Optional[FakeRedis]:
        return self.redis


@pytest.fixture
def store():
    """Empty in-memory credential store."""
    return MemoryStore()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def publish_settings():
    """Publish settings with every wait shortened for tests."""
    return PublishSettings(
        threads_publish_delay_seconds=0,
        bluesky_video_poll_interval=0.01,
        bluesky_video_poll_timeout_seconds=1,
        media_fetch_backoff_seconds=0,
    )


# =============================================================================
# Sample data
# =============================================================================


@pytest.fixture
def oauth_credentials():
    return PlatformCredentials(client_id="client-id", client_secret="client-secret")


@pytest.fixture
def twitter_connection():
    return TwitterConnection(
        uid=USER_ID,
        twitter_user_id="tw-1",
        screen_name="example",
        access_token="tw-access",
        refresh_token="tw-refresh",
        expires_at=utcnow() + timedelta(hours=2),
        scopes=["tweet.read", "tweet.write"],
    )


@pytest.fixture
def linkedin_connection():
    return LinkedInConnection(
        uid=USER_ID,
        linkedin_user_id="li-1",
        access_token="li-access",
        refresh_token="li-refresh",
        expires_at=utcnow() + timedelta(days=30),
    )


@pytest.fixture
def tiktok_connection():
    return TikTokConnection(
        uid=USER_ID,
        tiktok_user_id="tt-1",
        display_name="Example",
        access_token="tt-access",
        refresh_token="tt-refresh",
        expires_at=utcnow() + timedelta(hours=12),
    )


@pytest.fixture
def threads_connection():
    return ThreadsConnection(
        uid=USER_ID,
        threads_user_id="th-1",
        access_token="th-access",
        expires_at=utcnow() + timedelta(days=30),
    )


@pytest.fixture
def bluesky_connection():
    return BlueskyConnection(
        uid=USER_ID,
        handle="example.bsky.social",
        did="did:plc:example",
        access_jwt=make_jwt(3600),
        refresh_jwt=make_jwt(86400),
    )


@pytest.fixture
def devto_connection():
    return DevtoConnection(uid=USER_ID, api_key="devto-key", username="example")


@pytest.fixture
def discord_connection():
    return DiscordConnection(
        uid=USER_ID,
        webhook_url=DISCORD_WEBHOOK,
        webhook_id="123456",
        webhook_token="abc-TOKEN_xyz",
    )


@pytest.fixture
def github_connection():
    return GitHubConnection(uid=USER_ID, token="ghp_example", username="example")


# Test environment cleanup
@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)
