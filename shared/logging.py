"""
Structured logging for EcoLens.

Sets up structlog on top of the standard library with:
- JSON formatting for production, pretty console for development
- Redaction of credentials, tokens and one-time codes
- Quieter third-party loggers (pymongo, httpx)

Call setup_logging() once at startup (create_app does this); modules obtain
loggers with get_logger(__name__).
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "password",
    "password_hash",
    "token",
    "access_token",
    "refresh_token",
    "verification_token",
    "authorization",
    "cookie",
    "secret",
    "otp",
    "otp_code",
    "code_hash",
}

_SENSITIVE_FRAGMENTS = ("password", "token", "secret", "otp")
_PRESERVED_KEYS = {"level", "event", "timestamp", "logger"}


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("login_success", user_id="123")
    """
    return structlog.get_logger(name)


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _PRESERVED_KEYS:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            fragment in lowered for fragment in _SENSITIVE_FRAGMENTS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog processors.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True, pad_event=15, sort_keys=False)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    """Route stdlib logging to stdout and turn down noisy libraries."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    for noisy in ("pymongo", "httpx", "httpcore", "urllib3", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    env: Optional[str] = None,
) -> None:
    """
    Initialize logging for the application.

    Should be called early in application startup.
    """
    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    get_logger(__name__).info(
        "logging_initialized",
        env=env,
        log_level=log_level,
        log_format=log_format,
    )
