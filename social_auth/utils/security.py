"""
Security primitives for OAuth handshakes and credential checks.

Provides:
- Random ``state`` tokens and PKCE verifier/challenge pairs (RFC 7636)
- JWT expiry inspection without signature verification
- Platform-aware classification of authentication failures
"""

import base64
import hashlib
import logging
import re
import secrets
import time
from typing import Any, Optional

import jwt

logger = logging.getLogger(__name__)

PKCE_MIN_LENGTH = 43
PKCE_MAX_LENGTH = 128

# Substrings that mark an error as an authentication failure on any platform
GENERIC_AUTH_MARKERS = (
    "authentication",
    "authenticate",
    "invalid_token",
    "invalid_grant",
)

# Graph API error code for expired or invalidated access tokens
GRAPH_EXPIRED_SESSION = re.compile(r"['\"]code['\"]\s*:\s*190\b")

PLATFORM_AUTH_MARKERS = {
    "twitter": ("invalid_token", "invalid request", "authenticity token required"),
    "bluesky": ("could not resolve handle", "expiredtoken", "invalidtoken", "expired token"),
    "linkedin": ("unauthorized", "invalid_token", "expired_token"),
    "threads": ("oauthexception", "session has expired", "error validating access token"),
    "tiktok": ("access_token_invalid", "token_expired"),
}


def _base64url(data: bytes) -> str:
    """URL-safe base64 without padding (RFC 4648 §5)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_state() -> str:
    """Generate an opaque, cryptographically random OAuth state token."""
    return secrets.token_urlsafe(32)


def generate_code_verifier(length: int = 64) -> str:
    """
    Create a high-entropy PKCE code verifier.

    Args:
        length: Verifier length, between 43 and 128 characters

    Returns:
        URL-safe random string of exactly ``length`` characters

    Raises:
        ValueError: If ``length`` is outside the RFC 7636 bounds
    """
    if length < PKCE_MIN_LENGTH or length > PKCE_MAX_LENGTH:
        raise ValueError(
            f"PKCE code_verifier must be between {PKCE_MIN_LENGTH} and "
            f"{PKCE_MAX_LENGTH} characters"
        )
    raw = secrets.token_bytes((length * 3 + 3) // 4)
    return _base64url(raw)[:length]


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 PKCE challenge for a verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _base64url(digest)


def is_token_expired(token: Optional[str], leeway_seconds: int = 0) -> bool:
    """
    Check whether a JWT has expired based on its ``exp`` claim.

    Missing tokens, undecodable tokens and tokens without ``exp`` are
    treated as expired.
    """
    if not token:
        return True

    try:
        claims = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.PyJWTError:
        return True

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True

    return time.time() + leeway_seconds >= exp


def _error_status(err: Any) -> Optional[int]:
    status = getattr(err, "status_code", None)
    if status is None:
        response = getattr(err, "response", None)
        status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _error_text(err: Any) -> str:
    parts = [str(getattr(err, "message", None) or err)]
    body = getattr(err, "response_body", None)
    if body:
        parts.append(str(body))
    error_code = getattr(err, "error_code", None)
    if error_code:
        parts.append(str(error_code))
    raw = getattr(err, "raw_error", None)
    if raw:
        parts.append(str(raw))
    return " ".join(parts).lower()


def is_auth_error(platform: str, err: Any) -> bool:
    """
    Check whether an error indicates an authentication/authorization problem.

    Args:
        platform: Platform identifier the error came from
        err: Exception (or error-like object) to classify

    Returns:
        True if the credential should be refreshed or reconnected
    """
    if err is None:
        return False

    status = _error_status(err)
    if status in (401, 403):
        return True

    text = _error_text(err)
    if any(marker in text for marker in GENERIC_AUTH_MARKERS):
        return True

    platform_key = getattr(platform, "value", platform)
    markers = PLATFORM_AUTH_MARKERS.get(platform_key, ())
    if platform_key == "bluesky" and status == 400 and "invalid handle or password" in text:
        return True
    if platform_key == "threads" and GRAPH_EXPIRED_SESSION.search(text):
        return True

    return any(marker in text for marker in markers)
