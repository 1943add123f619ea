"""
Exception hierarchy for social-auth.

Configuration, handshake and credential problems are raised to the caller.
Handlers convert publish-time failures into ``PostResult`` objects; the
dispatcher converts anything that still escapes a handler.
"""

from typing import Any, Dict, Optional


class SocialAuthError(Exception):
    """Base exception for all social-auth errors."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        error_code: Optional[str] = None,
        raw_error: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the error.

        Args:
            message: Human-readable error message
            platform: The platform the error relates to
            error_code: Platform-specific error code
            raw_error: Raw error payload returned by the platform
        """
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.error_code = error_code
        self.raw_error = raw_error


class ConfigurationError(SocialAuthError):
    """Raised when client credentials or platform configuration are missing."""

    pass


class UnsupportedPlatformError(ConfigurationError):
    """Raised when a platform is unknown or not present in configuration."""

    pass


class ValidationError(SocialAuthError):
    """Raised when required connection fields or inputs are missing or malformed."""

    pass


class OAuthStateError(SocialAuthError):
    """Raised when an OAuth state is unknown, expired or already consumed."""

    pass


class AuthFlowNotSupportedError(SocialAuthError):
    """Raised when a platform does not use the requested authentication flow."""

    pass


class ConnectionNotFoundError(SocialAuthError):
    """Raised when no stored connection exists for a user and platform."""

    pass


class AuthenticationError(SocialAuthError):
    """Raised when a credential is rejected or cannot be refreshed."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        raw_error: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            platform=platform,
            error_code=error_code,
            raw_error=raw_error,
        )
        self.status_code = status_code


class RefreshTokenMissingError(AuthenticationError):
    """Raised when a connection has no refresh credential and must be reconnected."""

    pass


class MediaError(SocialAuthError):
    """Raised when media cannot be downloaded, validated or uploaded."""

    pass


class PlatformAPIError(SocialAuthError):
    """Raised for non-2xx platform responses that are not authentication failures."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        error_code: Optional[str] = None,
        raw_error: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            platform=platform,
            error_code=error_code,
            raw_error=raw_error,
        )
        self.status_code = status_code
        self.response_body = response_body


class RateLimitError(PlatformAPIError):
    """Raised when a platform rate limits the request."""

    def __init__(
        self,
        message: str,
        platform: Optional[str] = None,
        retry_after: int = 60,
        status_code: Optional[int] = 429,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            platform=platform,
            status_code=status_code,
            response_body=response_body,
        )
        self.retry_after = retry_after
