"""Logging configuration for the Orders domain.

Stdlib logging carries the handlers; structlog renders on top of it. Events
are JSON lines in production and staging so webhook rejections and
persistence failures can be alerted on by name.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_QUIET_LOGGERS = ("protean", "urllib3", "asyncio", "httpx")

_MASKED_KEYS = frozenset({"guest_email", "email", "recipient"})


def deployment_environment() -> str:
    """production, staging, development or test, from ENV, ENVIRONMENT or PROTEAN_ENV."""
    return (os.getenv("ENV") or os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()


def get_log_level() -> str:
    """Level from LOG_LEVEL, else derived from the deployment environment."""
    return os.getenv("LOG_LEVEL", _LEVELS.get(deployment_environment(), "INFO"))


def _rotating(path: Path, level: int | str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(log_dir: Path | None = None) -> None:
    """Send records to stdout, ``orders.log`` and the error-only ``orders_error.log``."""
    level = get_log_level()
    log_dir = log_dir or Path(os.getenv("ORDERS_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [
        console,
        _rotating(log_dir / "orders.log", level),
        _rotating(log_dir / "orders_error.log", logging.ERROR),
    ]

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def mask_emails(_logger, _method_name: str, event_dict: dict) -> dict:
    """Keep the domain of customer email addresses, hide the local part."""
    for key in _MASKED_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and "@" in value:
            local, _, domain = value.partition("@")
            event_dict[key] = f"{local[:1]}***@{domain}"
    return event_dict


def setup_structlog() -> None:
    """JSON in production and staging, coloured console output otherwise."""
    structured = deployment_environment() in ("production", "staging")

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        mask_emails,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if structured:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=4),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging() -> None:
    setup_stdlib_logging()
    setup_structlog()


def add_context(**kwargs: Any) -> None:
    """Bind key-values into every log line of the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
