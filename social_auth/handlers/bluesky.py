"""
Bluesky publish handler.

Posts are ``app.bsky.feed.post`` records created over raw XRPC against the
account's PDS. Images are uploaded as blobs; videos go to the Bluesky video
service with a service-auth token and are polled until processing
completes. Media failures fail the attempt.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from ..connections.bluesky import pds_url
from ..errors import MediaError
from ..storage.base import CredentialStore
from ..types import BlueskyConnection, Platform, PostOptions, PostResult, utcnow
from ..utils.http import http_client, raise_for_platform, require_fields, response_json
from ..utils.media import download_media, get_video_dimensions, is_video_file, media_limit
from ..utils.richtext import detect_facets
from ..utils.security import is_token_expired
from .base import PUBLISH_ERRORS, BaseHandler, is_credential_failure, mark_invalid

logger = logging.getLogger(__name__)

VIDEO_SERVICE = "https://video.bsky.app"
SERVICE_AUTH_TTL_SECONDS = 30 * 60
ACCESS_JWT_LEEWAY_SECONDS = 60


def _isoformat(value) -> str:
    return value.isoformat().replace("+00:00", "Z")


class BlueskyHandler(BaseHandler):
    """Publishes posts to Bluesky with optional image or video embeds."""

    platform = Platform.BLUESKY
    display_name = "Bluesky"

    async def send_post(
        self,
        user_id: str,
        connection: BlueskyConnection,
        options: PostOptions,
        store: CredentialStore,
    ) -> PostResult:
        if not (connection.access_jwt and connection.refresh_jwt and connection.did):
            return PostResult.failure(
                self.platform.value,
                "Bluesky connection is missing session data. Please reconnect.",
            )

        try:
            connection, refreshed = await self._resume_session(connection)
        except PUBLISH_ERRORS as e:
            await mark_invalid(store, user_id, self.platform)
            return PostResult.failure(
                self.platform.value,
                f"Bluesky session refresh failed: {e}",
            )

        async def publish(conn: BlueskyConnection) -> Dict[str, Any]:
            embed = None
            if options.media_url:
                embed = await self._build_embed(conn, options.media_url, options.media_alt_text)

            uri, cid = await self._create_post(conn, options.text, embed)
            return {"uri": uri, "cid": cid}

        return await self.publish_with_retry(user_id, connection, store, publish, refreshed)

    async def _resume_session(
        self,
        connection: BlueskyConnection,
    ) -> Tuple[BlueskyConnection, bool]:
        """
        Make sure the access JWT is usable, refreshing the session if not.

        Returns:
            The connection to publish with, and whether it was refreshed
        """
        if is_token_expired(connection.access_jwt, ACCESS_JWT_LEEWAY_SECONDS):
            logger.debug(f"Bluesky access token for {connection.handle} expired, refreshing")
            return await self.provider.refresh_token(connection), True

        try:
            async with http_client(self.transport, self.timeout) as client:
                response = await client.get(
                    f"{pds_url(connection)}/xrpc/com.atproto.server.getSession",
                    headers={"Authorization": f"Bearer {connection.access_jwt}"},
                )
                raise_for_platform(self.platform.value, response, "Bluesky session resume")
        except PUBLISH_ERRORS as e:
            if not is_credential_failure(self.platform, e):
                raise
            logger.info(f"Bluesky session for {connection.handle} rejected, refreshing")
            return await self.provider.refresh_token(connection), True

        return connection, False

    def _auth_headers(self, connection: BlueskyConnection) -> Dict[str, str]:
        return {"Authorization": f"Bearer {connection.access_jwt}"}

    async def _resolve_handle(self, handle: str) -> Optional[str]:
        async with http_client(self.transport, self.timeout) as client:
            response = await client.get(
                f"{pds_url()}/xrpc/com.atproto.identity.resolveHandle",
                params={"handle": handle},
            )
        if not response.is_success:
            return None
        return response_json(response).get("did")

    async def _create_post(
        self,
        connection: BlueskyConnection,
        text: str,
        embed: Optional[Dict[str, Any]],
    ) -> Tuple[str, str]:
        record: Dict[str, Any] = {
            "$type": "app.bsky.feed.post",
            "text": text,
            "createdAt": _isoformat(utcnow()),
        }
        facets = await detect_facets(text, self._resolve_handle)
        if facets:
            record["facets"] = facets
        if embed:
            record["embed"] = embed

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{pds_url(connection)}/xrpc/com.atproto.repo.createRecord",
                headers=self._auth_headers(connection),
                json={
                    "repo": connection.did,
                    "collection": "app.bsky.feed.post",
                    "record": record,
                },
            )
            raise_for_platform(self.platform.value, response, "Bluesky post")
            data = require_fields(self.platform.value, response_json(response), ("uri", "cid"), "Bluesky post")

        return data["uri"], data["cid"]

    async def _build_embed(
        self,
        connection: BlueskyConnection,
        media_url: str,
        alt_text: Optional[str],
    ) -> Dict[str, Any]:
        if is_video_file(media_url):
            return await self._video_embed(connection, media_url, alt_text)
        return await self._image_embed(connection, media_url, alt_text)

    async def _image_embed(
        self,
        connection: BlueskyConnection,
        media_url: str,
        alt_text: Optional[str],
    ) -> Dict[str, Any]:
        media = await download_media(
            self.platform.value,
            media_url,
            transport=self.transport,
            max_size=media_limit(self.platform.value, "image"),
            retries=self.settings.media_fetch_retries,
            backoff_seconds=self.settings.media_fetch_backoff_seconds,
        )

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{pds_url(connection)}/xrpc/com.atproto.repo.uploadBlob",
                headers={
                    **self._auth_headers(connection),
                    "Content-Type": media.mime_type or "image/jpeg",
                },
                content=media.content,
            )
            raise_for_platform(self.platform.value, response, "Bluesky image upload")
            data = require_fields(self.platform.value, response_json(response), ("blob",), "Bluesky image upload")
            blob = data["blob"]

        return {
            "$type": "app.bsky.embed.images",
            "images": [{"alt": alt_text or "", "image": blob}],
        }

    async def _service_auth_token(self, connection: BlueskyConnection) -> str:
        """Service-auth token the video service accepts for blob uploads."""
        pds_host = urlparse(pds_url(connection)).hostname
        async with http_client(self.transport, self.timeout) as client:
            response = await client.get(
                f"{pds_url(connection)}/xrpc/com.atproto.server.getServiceAuth",
                headers=self._auth_headers(connection),
                params={
                    "aud": f"did:web:{pds_host}",
                    "lxm": "com.atproto.repo.uploadBlob",
                    "exp": int(time.time()) + SERVICE_AUTH_TTL_SECONDS,
                },
            )
            raise_for_platform(self.platform.value, response, "Bluesky service auth")
        return require_fields(self.platform.value, response_json(response), ("token",), "Bluesky service auth")["token"]

    async def _video_embed(
        self,
        connection: BlueskyConnection,
        media_url: str,
        alt_text: Optional[str],
    ) -> Dict[str, Any]:
        token = await self._service_auth_token(connection)
        media = await download_media(
            self.platform.value,
            media_url,
            transport=self.transport,
            retries=self.settings.media_fetch_retries,
            backoff_seconds=self.settings.media_fetch_backoff_seconds,
        )
        name = urlparse(media_url).path.rsplit("/", 1)[-1] or "video.mp4"

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{VIDEO_SERVICE}/xrpc/app.bsky.video.uploadVideo",
                params={"did": connection.did, "name": name},
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": media.mime_type or "video/mp4",
                },
                content=media.content,
            )
            raise_for_platform(self.platform.value, response, "Bluesky video upload")
            data = response_json(response)

        job = data.get("jobStatus", data)
        if not job.get("blob"):
            require_fields(self.platform.value, job, ("jobId",), "Bluesky video upload")
        blob = job.get("blob") or await self._wait_for_video(connection, job["jobId"])
        width, height = await get_video_dimensions(media.content)

        embed: Dict[str, Any] = {
            "$type": "app.bsky.embed.video",
            "video": blob,
            "aspectRatio": {"width": width, "height": height},
        }
        if alt_text:
            embed["alt"] = alt_text
        return embed

    async def _wait_for_video(self, connection: BlueskyConnection, job_id: str) -> Dict[str, Any]:
        """
        Poll the video job until it yields a blob.

        Raises:
            MediaError: If the job fails or does not finish within the
                configured timeout
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.bluesky_video_poll_timeout_seconds

        async with http_client(self.transport, self.timeout) as client:
            while True:
                response = await client.get(
                    f"{VIDEO_SERVICE}/xrpc/app.bsky.video.getJobStatus",
                    params={"jobId": job_id},
                    headers=self._auth_headers(connection),
                )
                raise_for_platform(self.platform.value, response, "Bluesky video status")
                job = response_json(response).get("jobStatus", {})

                if job.get("blob"):
                    return job["blob"]
                if job.get("state") == "JOB_STATE_FAILED":
                    raise MediaError(
                        f"Bluesky video processing failed: {job.get('error') or job.get('message')}",
                        platform=self.platform.value,
                    )
                if loop.time() >= deadline:
                    raise MediaError(
                        f"Bluesky video processing timed out after "
                        f"{self.settings.bluesky_video_poll_timeout_seconds:.0f}s",
                        platform=self.platform.value,
                    )

                logger.debug(f"Bluesky video job {job_id}: {job.get('state')} {job.get('progress', '')}")
                await asyncio.sleep(self.settings.bluesky_video_poll_interval)
