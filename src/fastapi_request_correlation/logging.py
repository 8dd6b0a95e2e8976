"""Structured logging configuration and per-request log binding."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from fastapi_request_correlation.config import CorrelationSettings, resolve_app_version
from fastapi_request_correlation.context import RequestContext


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog on top of the standard logging module.

    Request-scoped fields bound with ``bind_request_context`` are merged into
    every log event emitted while the request is being handled.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to render events as JSON
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if json_output
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    return structlog.get_logger(name)


def bind_request_context(ctx: RequestContext) -> None:
    """Replace the log context of the current worker with ``ctx``'s fields."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**ctx.log_fields())


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_operation(ctx: RequestContext, name: str, **attributes: Any) -> Iterator[None]:
    """Bind an operation name and attributes to logs for the duration of a block."""
    with structlog.contextvars.bound_contextvars(
        request_id=ctx.request_id,
        trace_id=ctx.trace_id,
        operation=name,
        **attributes,
    ):
        yield


def log_startup_info(settings: CorrelationSettings) -> None:
    logger = get_logger(__name__)
    logger.info(
        "application.ready",
        service=settings.service_name,
        version=resolve_app_version(settings),
        container_host=settings.container_host,
    )
    for name, url in sorted(settings.service_urls.items()):
        logger.info("application.downstream_service", target=name, url=url)
