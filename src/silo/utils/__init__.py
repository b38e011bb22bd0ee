"""Shared utilities for Silo."""

from silo.utils._author import format_author_line, parse_author_line
from silo.utils._git import decode_bytes, has_bare_repository_layout, is_empty_dir
from silo.utils._logging import LogFormatType, create_logger, open_log_file

__all__ = [
    "LogFormatType",
    "create_logger",
    "decode_bytes",
    "format_author_line",
    "has_bare_repository_layout",
    "is_empty_dir",
    "open_log_file",
    "parse_author_line",
]
