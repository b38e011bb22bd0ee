"""Silo: a version-controlled file store on top of git.

Every file stored in a Silo repository becomes one commit in a bare git
repository.

Example:
    >>> from silo import Repository
    >>> with Repository("~/silo") as repo:
    ...     _ = repo.add("example.txt")
"""

from silo.exceptions import (
    AlreadyPreparedError,
    ConfigError,
    ConfigLoadError,
    FileNotInRepositoryError,
    InvalidBackendRepositoryError,
    InvalidRepositoryError,
    NoSuchPathError,
    RepositoryConflictError,
    SiloError,
    SiloPathError,
)
from silo.repository import CommitInfo, CommitResult, Repository

__all__ = [
    "AlreadyPreparedError",
    "CommitInfo",
    "CommitResult",
    "ConfigError",
    "ConfigLoadError",
    "FileNotInRepositoryError",
    "InvalidBackendRepositoryError",
    "InvalidRepositoryError",
    "NoSuchPathError",
    "Repository",
    "RepositoryConflictError",
    "SiloError",
    "SiloPathError",
]
