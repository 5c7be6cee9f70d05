"""Structured logging configuration with redaction support."""

import logging
import sys
from typing import Any, Dict

import structlog

SENSITIVE_KEY_PARTS = ("password", "secret", "token", "authorization", "cookie")

# Keys that contain a sensitive word but only describe the value, never hold it.
SAFE_KEYS = {"token_type", "expires_minutes", "expires_days"}


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Replace the value of any password, secret, token or cookie field.

    Matching is by substring of the lowercased key, so ``refresh_token``,
    ``access_token_secret`` and ``Authorization`` are all caught.
    """
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if key_lower in SAFE_KEYS:
            continue
        if any(part in key_lower for part in SENSITIVE_KEY_PARTS):
            event_dict[key] = "REDACTED"

    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output with correlation ID support.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance, optionally bound to a name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
