"""
HTTP helpers shared by providers and handlers.

Every provider and handler opens short-lived ``httpx.AsyncClient`` instances
through ``http_client`` so tests (and callers) can inject a transport.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from ..errors import AuthenticationError, PlatformAPIError, RateLimitError
from .security import is_auth_error

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def http_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> httpx.AsyncClient:
    """
    Create an async HTTP client.

    Args:
        transport: Optional transport override (e.g. ``httpx.MockTransport``)
        timeout: Request timeout in seconds

    Returns:
        A new ``httpx.AsyncClient``; use it as an async context manager
    """
    return httpx.AsyncClient(
        transport=transport,
        timeout=timeout,
        follow_redirects=True,
    )


def response_json(response: httpx.Response) -> Dict[str, Any]:
    """Decode a JSON object body, returning an empty dict for anything else."""
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


def require_fields(
    platform: str,
    data: Dict[str, Any],
    fields: Sequence[str],
    action: str,
) -> Dict[str, Any]:
    """
    Check that a successful response body carries the fields a caller needs.

    Returns:
        ``data`` unchanged

    Raises:
        PlatformAPIError: Naming every missing field
    """
    missing = [field for field in fields if not data.get(field)]
    if missing:
        raise PlatformAPIError(
            f"{action} response missing {', '.join(missing)}: {data}",
            platform=platform,
            raw_error=data or None,
        )
    return data


def _error_code(data: Dict[str, Any]) -> Optional[str]:
    error = data.get("error")
    if isinstance(error, dict):
        code = error.get("code") or error.get("type")
        return str(code) if code is not None else None
    if isinstance(error, str):
        return error
    return None


def raise_for_platform(
    platform: str,
    response: httpx.Response,
    action: str,
) -> None:
    """
    Raise the matching social-auth error for a non-2xx response.

    Args:
        platform: Platform identifier, used for auth-error classification
        response: The HTTP response to check
        action: Short description of the request, used in the message

    Raises:
        AuthenticationError: If the response is classified as an auth failure
        RateLimitError: If the platform rate limited the request
        PlatformAPIError: For any other non-2xx response
    """
    if response.is_success:
        return

    body = response.text
    data = response_json(response)
    message = (
        f"{action} failed: {response.status_code} "
        f"{response.reason_phrase} - {body}"
    ).strip()

    error = PlatformAPIError(
        message,
        platform=platform,
        status_code=response.status_code,
        response_body=body,
        error_code=_error_code(data),
        raw_error=data or None,
    )

    if is_auth_error(platform, error):
        raise AuthenticationError(
            message,
            platform=platform,
            status_code=response.status_code,
            error_code=error.error_code,
            raw_error=error.raw_error,
        )

    if response.status_code == 429:
        try:
            retry_after = int(response.headers.get("retry-after", 60))
        except ValueError:
            retry_after = 60
        raise RateLimitError(
            message,
            platform=platform,
            retry_after=retry_after,
            response_body=body,
        )

    raise error
