"""toolforge — Structured logging configuration.

Uses structlog for structured, levelled logging with consistent key names.
All log entries include:
    - timestamp (ISO-8601)
    - level
    - logger (Python logger name)
    - organization_id / request_id (bound via context variables when available)

Connection descriptors and query parameter values are never logged.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

from toolforge.config import LoggingConfig, get_settings

_ctx_organization_id: ContextVar[str | None] = ContextVar("organization_id", default=None)
_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def bind_request_context(
    organization_id: str | None = None,
    request_id: str | None = None,
) -> None:
    """Bind the calling request's identity to the current async task."""
    if organization_id is not None:
        _ctx_organization_id.set(organization_id)
    if request_id is not None:
        _ctx_request_id.set(request_id)


def clear_request_context() -> None:
    _ctx_organization_id.set(None)
    _ctx_request_id.set(None)


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Add ContextVar values to every log record."""
    if (organization_id := _ctx_organization_id.get()) is not None:
        event_dict["organization_id"] = organization_id
    if (request_id := _ctx_request_id.get()) is not None:
        event_dict["request_id"] = request_id
    return event_dict


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Call once at process startup, before any log statements.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  machine-readable structured logs.
        log_file: Optional path to write logs to in addition to stdout.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())

    # asyncpg logs server notices at INFO.
    for noisy in ("asyncpg", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def configure_logging_from_settings(config: LoggingConfig | None = None) -> None:
    """Apply a ``LoggingConfig`` (default: ``get_settings().logging``) at startup."""
    config = config or get_settings().logging
    configure_logging(
        level=config.level,
        format=config.format,
        log_file=str(config.file) if config.file else None,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("query_executed", operation="select", table="users", row_count=5)
    """
    return structlog.get_logger(name)
