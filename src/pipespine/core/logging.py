"""
Structured logging for pipespine.

Library modules only call :func:`get_logger`. The process entry point (the
CLI command or the API lifespan) calls :func:`configure_logging` once, from
``settings.log_level`` and ``settings.json_logs``.

Processor chain::

    TimeStamper(iso) → merge_contextvars → log level → logger name
        → service → JSONRenderer (not a tty) | ConsoleRenderer (tty)

Events are ``snake.case`` with key/value context. Per-query keys (``ref_id``,
``request_id``) are bound with :class:`LogContext`.

Examples:
    >>> configure_logging(level="DEBUG")
    >>> get_logger(__name__).info("query.completed", pipe="top_pages", frames=3)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


def _service_tagger(service: str) -> Processor:
    def add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "pipespine",
) -> None:
    """Configure structlog and the stdlib root logger it writes through.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        json_format: JSON lines when True, console output when False,
            and JSON only when stderr is not a tty when None.
        service: Value of the ``service`` key on every event.
    """
    numeric_level = getattr(logging, level.upper())
    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.dev.set_exc_info,
        _service_tagger(service),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # stdout carries command output, logs go to stderr
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


class LogContext:
    """Bind key/value pairs to every event logged inside the ``with`` block.

    Example:
        with LogContext(ref_id="A", request_id=ctx.request_id):
            logger.info("query.started")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._context)
        return self

    def __exit__(self, *exc_info: object) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)


__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
]
