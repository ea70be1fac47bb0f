"""
Structured logging for the plugin host.

Every module obtains its logger with ``get_logger(__name__)`` and logs
event-style messages with key/value fields:

    >>> log = get_logger(__name__)
    >>> log.debug("channel.connected", channel="foo", priority=2)

``configure_logging()`` sets up the structlog processor chain once at
startup:

    1. TimeStamper (ISO)
    2. add_log_level / add_logger_name
    3. service metadata
    4. JSONRenderer (or ConsoleRenderer when attached to a terminal)

Context bound with ``bind_context()`` or ``LogContext`` is merged into every
log line emitted while it is active. The application binds ``component=``
while a component initializes, so log lines emitted by the component's
own code carry its name.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "pluginhost"


def _add_service_metadata(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "pluginhost",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(component="search", version="1.0.0"):
            log.info("component.initializing")
        # Previous values restored here

    Contexts nest: leaving an inner context restores whatever the outer
    one bound for the same keys.
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._previous: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        current = structlog.contextvars.get_contextvars()
        self._previous = {key: current[key] for key in self._context if key in current}
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())
        if self._previous:
            bind_context(**self._previous)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
