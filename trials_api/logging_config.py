"""Structured logging setup shared by the API process and the reindex job."""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name


def configure_logging(service_name: str, log_level: str = "INFO", log_format: str = "json") -> None:
    """Route structlog through stdlib logging and bind the service name.

    ``log_format`` is ``json`` for machine-readable lines or ``console`` for
    local development.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_logger_name,
    ]
    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)
