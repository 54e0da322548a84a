"""Logging configuration for testplane.

Library modules log through the standard library, so a test suite can
capture fixture lifecycle events with its own handlers (pytest's caplog
included). The CLI calls configure_logging() once; after that those records
and the CLI's own structlog events go through one renderer, human-readable
or JSON.
"""

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog

# The health probe polls every 100ms; per-request logs would bury lifecycle events
QUIET_LOGGERS = ("httpx", "httpcore")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def configure_logging(
    level: str = "warning",
    log_file: str | Path | None = None,
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Configure logging for the CLI.

    Args:
        level: Log level (debug, info, warning, error, critical)
        log_file: Optional path to log file instead of a stream
        json_output: If True, output one JSON object per line
        stream: Stream to log to (default: stderr, leaving stdout to
            command output)

    Usage:
        CLI: configure_logging(level)
        CI:  configure_logging(level, json_output=True)
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(str(log_file))
    else:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    logging.basicConfig(level=log_level, handlers=[handler], force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
