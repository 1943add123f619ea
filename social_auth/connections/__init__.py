"""
Connection providers, one per platform.
"""

from typing import Dict, Type

from ..types import Platform
from .base import ConnectionProvider
from .bluesky import BlueskyConnectionProvider
from .devto import DevtoConnectionProvider
from .discord import DiscordConnectionProvider
from .github import GitHubConnectionProvider
from .linkedin import LinkedInConnectionProvider
from .threads import ThreadsConnectionProvider
from .tiktok import TikTokConnectionProvider
from .twitter import TwitterConnectionProvider

PROVIDER_CLASSES: Dict[Platform, Type] = {
    Platform.TWITTER: TwitterConnectionProvider,
    Platform.LINKEDIN: LinkedInConnectionProvider,
    Platform.BLUESKY: BlueskyConnectionProvider,
    Platform.TIKTOK: TikTokConnectionProvider,
    Platform.DEVTO: DevtoConnectionProvider,
    Platform.THREADS: ThreadsConnectionProvider,
    Platform.DISCORD: DiscordConnectionProvider,
    Platform.GITHUB: GitHubConnectionProvider,
}

__all__ = [
    "BlueskyConnectionProvider",
    "ConnectionProvider",
    "DevtoConnectionProvider",
    "DiscordConnectionProvider",
    "GitHubConnectionProvider",
    "LinkedInConnectionProvider",
    "PROVIDER_CLASSES",
    "ThreadsConnectionProvider",
    "TikTokConnectionProvider",
    "TwitterConnectionProvider",
]
