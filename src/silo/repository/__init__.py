"""Silo repository management.

This package provides the Repository class that stores files as commits in
a bare git repository, plus the pieces it is built from.

Classes:
    Repository: A Silo repository backed by a bare git repository.
    StagingIndex: In-memory index used to build one commit.
    WorkTree: A bound working tree directory.

Models:
    CommitResult: Result of an operation that wrote one commit.
    CommitInfo: Metadata about a single commit.

Example:
    >>> from silo.repository import Repository
    >>> with Repository("/var/lib/silo") as repo:
    ...     _ = repo.add("report.pdf", "2024/q1")
    ...     repo.contents()
    ['2024/q1/report.pdf']
"""

from silo.repository._models import CommitInfo, CommitResult
from silo.repository._repository import MARKER, Repository
from silo.repository._staging import StagingIndex
from silo.repository._work_tree import TEMPORARY, WorkTree, work_tree
from silo.utils._author import format_author_line

__all__ = [
    "MARKER",
    "TEMPORARY",
    "CommitInfo",
    "CommitResult",
    "Repository",
    "StagingIndex",
    "WorkTree",
    "format_author_line",
    "work_tree",
]
