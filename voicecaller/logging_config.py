"""
Structured logging configuration.

Sets up structlog on top of the stdlib logging module so that both our own
loggers and third-party ones (uvicorn, sqlalchemy) share one renderer.
"""

import logging
import sys
from typing import Any

import structlog

SENSITIVE_KEYS = {
    "api_key",
    "apikey",
    "token",
    "auth_token",
    "authorization",
    "password",
    "secret",
    "signed_url",
    "xi_api_key",
}


def _is_sensitive(key: str) -> bool:
    normalized = key.lower().replace("-", "_")
    return any(normalized == pattern or normalized.endswith(pattern) for pattern in SENSITIVE_KEYS)


def _redact(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str) and len(value) > 4:
        return f"{value[:2]}***REDACTED***"
    return "***REDACTED***"


def sanitize_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential-looking values before they reach a handler."""

    def sanitize(data: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in data.items():
            if _is_sensitive(str(key)):
                cleaned[key] = _redact(value)
            elif isinstance(value, dict):
                cleaned[key] = sanitize(value)
            else:
                cleaned[key] = value
        return cleaned

    return sanitize(event_dict)


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: debug|info|warning|error|critical
        log_format: "json" for production, "console" for a colorized dev view
    """
    level_value = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            sanitize_secrets,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if log_format.strip().lower() == "console":
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_value)

    # Reduce noisy third-party loggers
    for name in ("websockets", "websockets.client", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
