# ruff: noqa: TC003  # datetime needed at runtime for dataclass fields
"""Silo repository models.

This module defines data structures returned by repository operations.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class CommitResult:
    """Result of an operation that wrote one commit.

    Attributes:
        sha: Commit SHA hex string of the new history tip.
        files: Repository-relative paths written or removed by the commit.
        message: The commit message.
    """

    sha: str
    files: frozenset[str]
    message: str


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """Information about a single commit.

    Attributes:
        sha: Full 40-character commit SHA hex string.
        message: Complete commit message.
        author_name: Author name from commit.
        author_email: Author email from commit.
        timestamp: Commit timestamp as an aware datetime.
        files_changed: Number of files changed in this commit.
        parent_shas: SHA hex strings of parent commits (empty tuple for initial commit).
    """

    sha: str
    message: str
    author_name: str
    author_email: str
    timestamp: datetime
    files_changed: int
    parent_shas: tuple[str, ...]
