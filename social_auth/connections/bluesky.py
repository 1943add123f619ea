"""
Bluesky connection provider.

Bluesky authenticates with a handle and an (app) password through the AT
Protocol XRPC session endpoints; there is no redirect flow. Sessions consist
of a short-lived access JWT and a longer-lived refresh JWT.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import AuthenticationError, RefreshTokenMissingError, ValidationError
from ..storage.base import CredentialStore
from ..types import (
    AuthorizationRequest,
    BlueskyConnection,
    Platform,
    PlatformCredentials,
    utcnow,
)
from ..utils.http import http_client, raise_for_platform, response_json
from .base import (
    flow_not_supported,
    mark_needs_reconnection,
    persist_refresh,
    remove_connection,
    save_new_connection,
)

logger = logging.getLogger(__name__)

BLUESKY_SERVICE = "https://bsky.social"

# Refresh failures that can only be fixed by signing in again
TERMINAL_SESSION_ERRORS = ("ExpiredToken", "InvalidToken")


def pds_url(connection: Optional[BlueskyConnection] = None) -> str:
    """Base URL of the PDS hosting the account."""
    if connection is not None and connection.service_endpoint:
        return connection.service_endpoint.rstrip("/")
    return BLUESKY_SERVICE


def _service_endpoint(session: Dict[str, Any]) -> Optional[str]:
    # The DID document lists the account's PDS as the #atproto_pds service
    did_doc = session.get("didDoc") or {}
    for service in did_doc.get("service", []):
        if str(service.get("id", "")).endswith("#atproto_pds"):
            return service.get("serviceEndpoint")
    return None


class BlueskyConnectionProvider:
    """Bluesky handle/password session lifecycle."""

    platform = Platform.BLUESKY

    def __init__(
        self,
        store: CredentialStore,
        credentials: Optional[PlatformCredentials] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        service_url: str = BLUESKY_SERVICE,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.transport = transport
        self.timeout = timeout
        self.service_url = service_url.rstrip("/")

    async def initiate_auth(self, user_id: str, redirect_uri: str) -> AuthorizationRequest:
        raise flow_not_supported(
            self.platform,
            "Bluesky uses handle/password authentication. Use connect() instead.",
        )

    async def handle_callback(
        self,
        code: str,
        state: str,
        redirect_uri: str,
    ) -> BlueskyConnection:
        raise flow_not_supported(self.platform, "Bluesky does not use OAuth callbacks")

    async def connect(
        self,
        user_id: str,
        handle: str,
        password: str,
        auth_factor_token: Optional[str] = None,
    ) -> BlueskyConnection:
        """
        Sign in with handle and password and store the session.

        Args:
            user_id: Owner of the connection
            handle: Bluesky handle or DID
            password: Account or app password
            auth_factor_token: Email sign-in code for accounts with 2FA

        Raises:
            AuthenticationError: If the credentials are rejected, or with
                "authFactorToken required" when a sign-in code is needed
        """
        if not handle or not password:
            raise ValidationError(
                "Bluesky handle and password are required",
                platform=self.platform.value,
            )

        payload = {"identifier": handle.strip().lstrip("@"), "password": password}
        if auth_factor_token:
            payload["authFactorToken"] = auth_factor_token

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{self.service_url}/xrpc/com.atproto.server.createSession",
                json=payload,
            )

        if not response.is_success:
            data = response_json(response)
            if data.get("error") == "AuthFactorTokenRequired" or "sign in code has been sent" in str(
                data.get("message", "")
            ):
                raise AuthenticationError(
                    "authFactorToken required",
                    platform=self.platform.value,
                    status_code=response.status_code,
                    error_code="AuthFactorTokenRequired",
                    raw_error=data,
                )
            raise AuthenticationError(
                f"Bluesky authentication failed: {data.get('message') or response.text or 'Unknown error'}",
                platform=self.platform.value,
                status_code=response.status_code,
                error_code=data.get("error"),
                raw_error=data or None,
            )

        session = response.json()
        connection = BlueskyConnection(
            uid=user_id,
            handle=session["handle"],
            did=session["did"],
            access_jwt=session["accessJwt"],
            refresh_jwt=session["refreshJwt"],
            service_endpoint=_service_endpoint(session),
            last_validated=utcnow(),
        )
        return await save_new_connection(self.store, connection)

    async def refresh_token(self, connection: BlueskyConnection) -> BlueskyConnection:
        """
        Exchange the refresh JWT for a new session.

        An expired or revoked refresh JWT marks the stored connection as
        needing reconnection before the error is raised.
        """
        if not connection.refresh_jwt:
            raise RefreshTokenMissingError(
                "Cannot refresh: Missing Bluesky refresh token",
                platform=self.platform.value,
            )

        async with http_client(self.transport, self.timeout) as client:
            response = await client.post(
                f"{pds_url(connection)}/xrpc/com.atproto.server.refreshSession",
                headers={"Authorization": f"Bearer {connection.refresh_jwt}"},
            )

        if not response.is_success:
            data = response_json(response)
            if data.get("error") in TERMINAL_SESSION_ERRORS:
                await mark_needs_reconnection(self.store, connection)
                raise AuthenticationError(
                    f"Failed to refresh Bluesky session: {response.status_code} - {response.text}",
                    platform=self.platform.value,
                    status_code=response.status_code,
                    error_code=data.get("error"),
                    raw_error=data,
                )
            raise_for_platform(self.platform.value, response, "Bluesky session refresh")

        session = response.json()
        updates = {
            "access_jwt": session["accessJwt"],
            "refresh_jwt": session["refreshJwt"],
            "handle": session.get("handle", connection.handle),
            "did": session.get("did", connection.did),
        }
        endpoint = _service_endpoint(session)
        if endpoint:
            updates["service_endpoint"] = endpoint

        return await persist_refresh(self.store, connection, updates)

    async def disconnect(self, user_id: str) -> None:
        await remove_connection(self.store, self.platform, user_id)
