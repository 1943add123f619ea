"""
Structured logging for social-auth.

Provides:
- JSON structured logging for production environments
- Human-readable colored logging for development
- Publish context (user_id, platform) propagation
- Redaction of tokens, passwords and webhook secrets
- Timing for publish calls
"""

import json
import logging
import os
import re
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import LoggingSettings, get_settings

# Context variables for the current publish/handshake
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
platform_var: ContextVar[Optional[str]] = ContextVar("platform", default=None)

# Patterns for credentials that must never reach a log sink
SENSITIVE_PATTERNS: list[re.Pattern] = [
    re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'(?:client_)?secret["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'(?:access|refresh)?_?(?:token|jwt)["\']?\s*[:=]\s*["\']?[\w.-]+', re.IGNORECASE),
    re.compile(r'code_verifier["\']?\s*[:=]\s*["\']?[\w.~-]+', re.IGNORECASE),
    re.compile(r'bearer\s+[\w.-]+', re.IGNORECASE),
    re.compile(r'authorization["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'(api/webhooks/\d+/)[\w-]+', re.IGNORECASE),  # Discord webhook tokens
    re.compile(r'eyJ[\w-]+\.eyJ[\w-]+\.[\w-]+', re.IGNORECASE),  # JWT tokens
]

REDACTED = "[REDACTED]"

# Fields to exclude from extra data in JSON logs
EXCLUDED_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "user_id", "platform", "message", "taskName",
})


def _redact(match: re.Match) -> str:
    # Keep the webhook path prefix so the log still says which webhook failed
    if match.re.groups and match.group(1):
        return f"{match.group(1)}{REDACTED}"
    return REDACTED


def redact_sensitive_data(message: str) -> str:
    """
    Redact sensitive data from log messages.

    Args:
        message: The log message to sanitize

    Returns:
        Message with credentials replaced with [REDACTED]
    """
    if not message:
        return message

    result = message
    for pattern in SENSITIVE_PATTERNS:
        result = pattern.sub(_redact, result)
    return result


class ContextFilter(logging.Filter):
    """Add publish context to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = user_id_var.get() or "-"
        record.platform = platform_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Filter credentials from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive_data(str(arg)) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production.

    Outputs single-line JSON objects:
    {
        "timestamp": "2024-01-15T10:30:00.123456Z",
        "level": "INFO",
        "logger": "social_auth.handlers.twitter",
        "message": "Tweet published",
        "service": "social-auth",
        "user_id": "user-456",
        "platform": "twitter",
        "extra": {...}
    }
    """

    def __init__(self, service_name: str = "social-auth"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "user_id": getattr(record, "user_id", "-"),
            "platform": getattr(record, "platform", "-"),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = redact_sensitive_data(
                self.formatException(record.exc_info)
            )

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in EXCLUDED_RECORD_ATTRS and not k.startswith("_")
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter with colors for development.

    Format: [timestamp] LEVEL    [platform] [user_id] logger - message
    """

    COLORS: Dict[str, str] = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        platform = getattr(record, "platform", "-")
        user_id = getattr(record, "user_id", "-")
        user_display = user_id[:8] if user_id != "-" else "-"

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        formatted = (
            f"{self.DIM}[{timestamp}]{self.RESET} "
            f"{color}{self.BOLD}{record.levelname:8}{reset} "
            f"{self.DIM}[{platform:>8}] [{user_display:>8}]{self.RESET} "
            f"{record.name} - {record.getMessage()}"
        )

        extra_fields = {
            k: v for k, v in record.__dict__.items()
            if k not in EXCLUDED_RECORD_ATTRS and not k.startswith("_")
        }
        if extra_fields:
            formatted += f" {self.DIM}{extra_fields}{self.RESET}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def get_log_level(settings: Optional[LoggingSettings] = None) -> int:
    """Get the configured log level (LOG_LEVEL) as a logging constant."""
    settings = settings or get_settings().logging
    level_name = settings.log_level.upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        return logging.INFO
    return level


def should_use_json_format(settings: Optional[LoggingSettings] = None) -> bool:
    """Determine if JSON format should be used for logging."""
    settings = settings or get_settings().logging
    if settings.log_format_json:
        return True

    env = os.environ.get("ENVIRONMENT", "development")
    return env.lower() in ("production", "prod")


def setup_logging(
    service_name: str = "social-auth",
    log_level: Optional[int] = None,
    force_json: bool = False,
    settings: Optional[LoggingSettings] = None,
) -> logging.Logger:
    """
    Configure structured logging for an application embedding social-auth.

    Args:
        service_name: Name of the service for log identification
        log_level: Override log level (defaults to the configured level)
        force_json: Force JSON output even in development
        settings: Logging settings (defaults to ``get_settings().logging``)

    Returns:
        Configured root logger
    """
    settings = settings or get_settings().logging
    level = log_level if log_level is not None else get_log_level(settings)
    use_json = force_json or should_use_json_format(settings)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    handler.addFilter(SensitiveDataFilter())

    if use_json:
        handler.setFormatter(JSONFormatter(service_name))
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Request lines from httpx include full URLs with query-string tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    root_logger.debug(
        "Logging configured",
        extra={
            "log_level": logging.getLevelName(level),
            "format": "json" if use_json else "development",
            "service": service_name,
        },
    )

    return root_logger


def set_publish_context(
    user_id: Optional[str] = None,
    platform: Optional[str] = None,
) -> None:
    """
    Set the user/platform context for the current async task.

    The dispatcher sets this per publish so every record logged by the
    handler carries it.
    """
    if user_id is not None:
        user_id_var.set(user_id)
    if platform is not None:
        platform_var.set(getattr(platform, "value", platform))


def clear_publish_context() -> None:
    """Clear the user/platform context."""
    user_id_var.set(None)
    platform_var.set(None)


class Timer:
    """
    Context manager for timing operations.

    Usage:
        with Timer("twitter publish", logger):
            result = await handler.send_post(...)
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if self.logger:
            self.logger.log(
                self.log_level,
                f"{self.name} completed in {self.elapsed_ms:.2f}ms",
                extra={
                    "operation": self.name,
                    "duration_ms": round(self.elapsed_ms, 2),
                    "success": exc_type is None,
                },
            )
