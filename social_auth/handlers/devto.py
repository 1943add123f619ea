"""
Dev.to publish handler.

Posts become published articles. Structured article fields can be passed in
``post_data``; otherwise the title, tags and body are derived from the post
text.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..connections.devto import DEVTO_API_BASE
from ..errors import ValidationError
from ..storage.base import CredentialStore
from ..types import DevtoConnection, Platform, PostOptions, PostResult
from ..utils.http import http_client, raise_for_platform
from .base import BaseHandler

logger = logging.getLogger(__name__)

HASHTAG_PATTERN = re.compile(r"#(\w+)")
MAX_TAGS = 4
MAX_TAG_LENGTH = 20
MAX_TITLE_LENGTH = 60
DEFAULT_TAGS = ["general", "development"]
DEFAULT_TITLE = "Untitled Article"


def parse_content(text: str) -> Tuple[str, str]:
    """
    Split post text into an article title and body.

    A first line followed by a blank line (with more text after it) is the
    title. Otherwise the first line is used as the title, shortened when
    long, and the whole text is the body.
    """
    lines = text.split("\n")
    if len(lines) >= 3 and lines[0].strip() and not lines[1].strip():
        return lines[0].strip(), "\n".join(lines[2:]).strip()

    first_line = lines[0].strip()
    if len(first_line) > MAX_TITLE_LENGTH:
        title = first_line[:MAX_TITLE_LENGTH - 3] + "..."
    else:
        title = first_line or DEFAULT_TITLE
    return title, text


def extract_tags(text: str) -> List[str]:
    """Up to four unique lowercase hashtags usable as Dev.to tags."""
    tags: List[str] = []
    for tag in HASHTAG_PATTERN.findall(text):
        tag = tag.lower()
        if len(tag) <= MAX_TAG_LENGTH and tag not in tags:
            tags.append(tag)
        if len(tags) == MAX_TAGS:
            break
    return tags


def _split_tags(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(tag).strip() for tag in value if str(tag).strip()][:MAX_TAGS]
    return [tag.strip() for tag in str(value).split(",") if tag.strip()][:MAX_TAGS]


def build_article(options: PostOptions) -> Dict[str, Any]:
    """Article payload for ``POST /api/articles``."""
    post_data = options.post_data or {}

    title, body = parse_content(options.text)
    title = post_data.get("devto_title") or title
    body = post_data.get("devto_body_markdown") or body

    if post_data.get("devto_tags"):
        tags = _split_tags(post_data["devto_tags"])
    else:
        tags = extract_tags(options.text) or list(DEFAULT_TAGS)

    article: Dict[str, Any] = {
        "title": title,
        "body_markdown": body,
        "published": True,
        "tags": tags,
    }
    if post_data.get("devto_description"):
        article["description"] = post_data["devto_description"]
    if options.media_url:
        article["main_image"] = options.media_url
    if options.project_name and options.project_name.strip():
        article["series"] = options.project_name.strip()

    return {"article": article}


class DevtoHandler(BaseHandler):
    """Publishes Dev.to articles."""

    platform = Platform.DEVTO
    display_name = "Dev.to"

    async def send_post(
        self,
        user_id: str,
        connection: DevtoConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.api_key:
            raise ValidationError("Missing Dev.to API key", platform=self.platform.value)

        async def publish(conn: DevtoConnection) -> Dict[str, Any]:
            return await self._create_article(conn, build_article(options))

        return await self.publish_with_retry(user_id, connection, store, publish)

    async def _create_article(
        self,
        connection: DevtoConnection,
        payload: Dict[str, Any],
    ) -> Dict[str, Optional[str]]:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{DEVTO_API_BASE}/articles",
                headers={"api-key": connection.api_key, "Accept": "application/json"},
                json=payload,
            )
            raise_for_platform(self.platform.value, response, "Dev.to article")
            data = response.json()

        return {
            "id": str(data.get("id")),
            "url": data.get("url"),
            "title": data.get("title"),
        }
