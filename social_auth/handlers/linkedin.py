"""
LinkedIn publish handler.

Media goes through the two-step asset flow: register an upload for the
member, then PUT the bytes to the returned upload URL. The asset URN is
attached to a UGC post. A failed media upload is not fatal: the post is
published as text.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from ..errors import PlatformAPIError, ValidationError
from ..storage.base import CredentialStore
from ..types import LinkedInConnection, Platform, PostOptions, PostResult
from ..utils.http import http_client, raise_for_platform, require_fields, response_json
from ..utils.media import fetch_with_retry
from .base import PUBLISH_ERRORS, BaseHandler

logger = logging.getLogger(__name__)

LINKEDIN_VIDEO_PATTERN = re.compile(r"(\.mp4|\.mov|\.avi|\.webm)(\?|$)", re.IGNORECASE)

UPLOAD_RECIPES = {
    "IMAGE": "urn:li:digitalmediaRecipe:feedshare-image",
    "VIDEO": "urn:li:digitalmediaRecipe:feedshare-video",
}
UPLOAD_MECHANISM_KEY = "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest"


def share_media_category(media_url: Optional[str]) -> str:
    """UGC ``shareMediaCategory`` for the post's media."""
    if not media_url:
        return "NONE"
    return "VIDEO" if LINKEDIN_VIDEO_PATTERN.search(media_url) else "IMAGE"


class LinkedInHandler(BaseHandler):
    """Publishes UGC posts for a LinkedIn member."""

    platform = Platform.LINKEDIN
    display_name = "LinkedIn"

    API_BASE = "https://api.linkedin.com/v2"

    async def send_post(
        self,
        user_id: str,
        connection: LinkedInConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not connection.access_token:
            raise ValidationError("Missing LinkedIn access token", platform=self.platform.value)
        if not connection.linkedin_user_id:
            raise ValidationError(
                "Missing LinkedIn member id. Ensure this is stored upon user connection.",
                platform=self.platform.value,
            )

        connection, refreshed = await self.refresh_before_publish(user_id, connection, store)

        async def publish(conn: LinkedInConnection) -> Dict[str, Any]:
            member_urn = f"urn:li:person:{conn.linkedin_user_id}"
            category = share_media_category(options.media_url)
            media: List[Dict[str, Any]] = []

            if options.media_url:
                try:
                    asset = await self._upload_media(conn, member_urn, category, options.media_url)
                    media = [
                        {
                            "status": "READY",
                            "description": {"text": options.media_alt_text or ""},
                            "media": asset,
                            "title": {"text": options.media_alt_text or ""},
                        }
                    ]
                except PUBLISH_ERRORS as e:
                    logger.warning(f"LinkedIn media upload failed, posting text only: {e}")
                    category = "NONE"

            return {"id": await self._create_post(conn, member_urn, options.text, category, media)}

        return await self.publish_with_retry(user_id, connection, store, publish, refreshed)

    async def _create_post(
        self,
        connection: LinkedInConnection,
        member_urn: str,
        text: str,
        category: str,
        media: List[Dict[str, Any]],
    ) -> Optional[str]:
        share_content: Dict[str, Any] = {
            "shareCommentary": {"text": text},
            "shareMediaCategory": category,
        }
        if media:
            share_content["media"] = media

        payload = {
            "author": member_urn,
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": share_content},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
        }

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.API_BASE}/ugcPosts",
                headers={
                    "Authorization": f"Bearer {connection.access_token}",
                    "X-Restli-Protocol-Version": "2.0.0",
                },
                json=payload,
            )
            raise_for_platform(self.platform.value, response, "LinkedIn post")

        # LinkedIn returns the new post URN in a header, not the body
        post_urn = response.headers.get("x-restli-id")
        if not post_urn:
            logger.warning("LinkedIn accepted the post without an x-restli-id header")
        return post_urn

    async def _register_upload(
        self,
        client,
        connection: LinkedInConnection,
        member_urn: str,
        category: str,
    ) -> Tuple[str, str]:
        response = await client.post(
            f"{self.API_BASE}/assets",
            params={"action": "registerUpload"},
            headers={"Authorization": f"Bearer {connection.access_token}"},
            json={
                "registerUploadRequest": {
                    "owner": member_urn,
                    "recipes": [UPLOAD_RECIPES[category]],
                    "serviceRelationships": [
                        {
                            "relationshipType": "OWNER",
                            "identifier": "urn:li:userGeneratedContent",
                        }
                    ],
                    "supportedUploadMechanism": ["SYNCHRONOUS_UPLOAD"],
                }
            },
        )
        raise_for_platform(self.platform.value, response, "LinkedIn register upload")

        value = response_json(response).get("value") or {}
        require_fields(self.platform.value, value, ("uploadMechanism", "asset"), "LinkedIn register upload")
        upload_url = (value["uploadMechanism"].get(UPLOAD_MECHANISM_KEY) or {}).get("uploadUrl")
        if not upload_url:
            raise PlatformAPIError(
                f"LinkedIn register upload response missing uploadUrl: {value}",
                platform=self.platform.value,
                raw_error=value,
            )
        return upload_url, value["asset"]

    async def _upload_media(
        self,
        connection: LinkedInConnection,
        member_urn: str,
        category: str,
        media_url: str,
    ) -> str:
        """Register, download and PUT the media; returns the asset URN."""
        async with http_client(self.transport, self.timeout) as client:
            upload_url, asset = await self._register_upload(
                client, connection, member_urn, category
            )

            source = await fetch_with_retry(
                client,
                "GET",
                media_url,
                retries=self.settings.media_fetch_retries,
                backoff_seconds=self.settings.media_fetch_backoff_seconds,
            )
            if not source.is_success:
                raise PlatformAPIError(
                    f"Failed to fetch media ({source.status_code})",
                    platform=self.platform.value,
                    status_code=source.status_code,
                )

            response = await client.put(
                upload_url,
                content=source.content,
                headers={
                    "Authorization": f"Bearer {connection.access_token}",
                    "Content-Type": source.headers.get("content-type", "application/octet-stream"),
                },
            )
            raise_for_platform(self.platform.value, response, "LinkedIn media upload")

        logger.debug(f"Uploaded LinkedIn asset {asset}")
        return asset
