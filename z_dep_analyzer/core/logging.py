"""Structured logging for the z-deps command — structlog rendered through stdlib logging."""

from __future__ import annotations

import logging
import os
import sys

import structlog

LEVEL_ENV = "ZDA_LOG_LEVEL"
FORMAT_ENV = "ZDA_LOG_FORMAT"


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog and stdlib records to one stderr handler.

    *level* and *fmt* (``console`` or ``json``) fall back to ``ZDA_LOG_LEVEL``
    (INFO) and ``ZDA_LOG_FORMAT`` (console). stdout is left to the analysis
    result.
    """
    log_level = (level or os.environ.get(LEVEL_ENV, "INFO")).upper()
    log_format = (fmt or os.environ.get(FORMAT_ENV, "console")).lower()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)
