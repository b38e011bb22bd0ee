"""Logging utilities for Silo.

This module provides a standalone structlog logger factory that writes
JSON-formatted or text-formatted logs to a file or to stderr. Each logger is
self-contained and does not modify global structlog configuration.
"""

import logging
import sys
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TextIO, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]


def _get_log_level() -> int:
    """Get the log level from environment variables.

    Checks SILO_DEBUG first (sets DEBUG if present), then SILO_LOG_LEVEL.
    Defaults to WARNING if neither is set.

    Returns:
        The logging level as an integer.
    """
    if getenv("SILO_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(getenv("SILO_LOG_LEVEL", "warning").upper(), logging.WARNING)


def _log_level_from_string(level: str) -> int:
    """Convert a log level string to a logging level integer.

    SILO_DEBUG always wins over the given level.

    Args:
        level: Log level string (debug, info, warning, error).

    Returns:
        The logging level as an integer.
    """
    if getenv("SILO_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.WARNING)


def open_log_file(log_file: str | Path) -> TextIO:
    """Open a log file for appending, creating parent directories.

    Args:
        log_file: Path to the log file.

    Returns:
        Text stream the caller is responsible for closing.
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return log_path.open("a", encoding="utf-8")


def create_logger(
    log_file: str | Path | TextIO | None = None,
    *,
    level: str | None = None,
    log_format: LogFormatType = "json",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger.

    The log level is determined by (in order of precedence):
    1. SILO_DEBUG environment variable (if set, enables DEBUG level)
    2. The `level` parameter (if provided)
    3. SILO_LOG_LEVEL environment variable
    4. Default: WARNING

    Args:
        log_file: Open stream, or path to the log file. A path is opened with
            open_log_file and the handle lives as long as the logger; callers
            that need to close it open the file themselves. Logs go to stderr
            when None or empty.
        level: Optional log level string (debug, info, warning, error).
        log_format: Output format, either "json" or "text".

    Returns:
        A configured FilteringBoundLogger instance.
    """
    effective_level = (
        _log_level_from_string(level) if level is not None else _get_log_level()
    )

    if not log_file:
        stream: TextIO = sys.stderr
    elif isinstance(log_file, str | Path):
        stream = open_log_file(log_file)
    else:
        stream = log_file
    logger_factory = structlog.WriteLoggerFactory(file=stream)

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    wrapper_class = structlog.make_filtering_bound_logger(effective_level)

    # wrap_logger leaves the global structlog configuration untouched
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            logger_factory(),
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )
