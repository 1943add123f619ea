"""
Platform handlers, one per platform.
"""

from typing import Dict, Type

from ..types import Platform
from .base import BaseHandler, PlatformHandler, is_credential_failure, needs_proactive_refresh
from .bluesky import BlueskyHandler
from .devto import DevtoHandler
from .discord import DiscordHandler
from .github import GitHubHandler
from .linkedin import LinkedInHandler
from .threads import ThreadsHandler
from .tiktok import TikTokHandler
from .twitter import TwitterHandler

HANDLER_CLASSES: Dict[Platform, Type[BaseHandler]] = {
    Platform.TWITTER: TwitterHandler,
    Platform.LINKEDIN: LinkedInHandler,
    Platform.BLUESKY: BlueskyHandler,
    Platform.TIKTOK: TikTokHandler,
    Platform.DEVTO: DevtoHandler,
    Platform.THREADS: ThreadsHandler,
    Platform.DISCORD: DiscordHandler,
    Platform.GITHUB: GitHubHandler,
}

__all__ = [
    "BaseHandler",
    "BlueskyHandler",
    "DevtoHandler",
    "DiscordHandler",
    "GitHubHandler",
    "HANDLER_CLASSES",
    "LinkedInHandler",
    "PlatformHandler",
    "ThreadsHandler",
    "TikTokHandler",
    "TwitterHandler",
    "is_credential_failure",
    "needs_proactive_refresh",
]
