"""Common git utility functions.

Helpers shared by the repository package for byte/string conversion and
recognizing the on-disk layout of a bare git repository.
"""

from pathlib import Path
from typing import Final

# Entries every bare git repository carries at its top level
_BARE_HEAD_FILE: Final = "HEAD"
_BARE_OBJECTS_DIR: Final = "objects"
_BARE_REFS_DIR: Final = "refs"


def decode_bytes(value: bytes | str) -> str:
    """Decode bytes to str if needed.

    Args:
        value: A bytes or str value.

    Returns:
        The value as a string.
    """
    if isinstance(value, bytes):
        return value.decode()
    return value


def is_empty_dir(path: Path) -> bool:
    """Check whether a directory has no entries.

    Args:
        path: An existing directory.

    Returns:
        True if the directory contains nothing.
    """
    return next(path.iterdir(), None) is None


def has_bare_repository_layout(path: Path) -> bool:
    """Check whether a directory looks like a bare git repository.

    Args:
        path: The directory to inspect.

    Returns:
        True if it contains a HEAD file and objects/ and refs/ directories.
    """
    return (
        (path / _BARE_HEAD_FILE).is_file()
        and (path / _BARE_OBJECTS_DIR).is_dir()
        and (path / _BARE_REFS_DIR).is_dir()
    )
