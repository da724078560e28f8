"""Logging configuration for SaleWatch using structlog.

Provides structured logging with console and JSON output formats. Pipeline
stages run inside :func:`stage_context`, so each line carries the stage that
emitted it.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from salewatch.config import LoggingConfig

# Chatty below WARNING: the scheduler logs every clock tick and urllib3 every
# HTTP connection it opens.
QUIET_LIBRARIES = ("apscheduler", "urllib3")


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog and standard library logging.

    Args:
        config: Optional logging configuration. If None, uses defaults.
    """
    if config is None:
        from salewatch.config import LoggingConfig

        config = LoggingConfig()

    log_level = getattr(logging, config.level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.format == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _quiet_libraries(log_level)

    if config.file is not None:
        _setup_file_logging(config.file, log_level)


def _quiet_libraries(level: int) -> None:
    """Hold library loggers at WARNING unless DEBUG output was asked for."""
    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)


def _setup_file_logging(file_path: Path, level: int) -> None:
    """Append log lines to a file in addition to stdout."""
    file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(file_path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter("%(message)s"))

    logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name, usually the caller's ``__name__``.

    Returns:
        A structlog BoundLogger instance.
    """
    return structlog.get_logger(name)


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Tag every log line emitted inside the block with a pipeline stage.

    The binding is undone on exit, so a stage run in the caller's own task
    does not leave ``stage`` behind once it returns.

    Args:
        stage: Stage name, such as ``notify``.
    """
    with structlog.contextvars.bound_contextvars(stage=stage):
        yield


def current_stage() -> str | None:
    """Return the stage bound by the innermost :func:`stage_context`."""
    return structlog.contextvars.get_contextvars().get("stage")


__all__ = [
    "setup_logging",
    "get_logger",
    "stage_context",
    "current_stage",
]
