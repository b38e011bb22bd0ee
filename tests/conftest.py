"""Shared test fixtures for Silo tests."""

import os
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

import pytest
from dulwich.index import commit_tree
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo

from silo.repository import Repository

TEST_AUTHOR_NAME = "Test User"
TEST_AUTHOR_EMAIL = "test@example.com"


@dataclass(frozen=True, slots=True)
class SourceFiles:
    """Paths of files used as input for Repository.add()."""

    root: Path
    example: Path
    other: Path


@pytest.fixture(autouse=True)
def silo_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests from the developer's SILO_* settings and git identity."""
    for key in list(os.environ):
        if key.startswith("SILO_") or key == "GIT_WORK_TREE":
            monkeypatch.delenv(key)
    monkeypatch.setenv("SILO_AUTHOR_NAME", TEST_AUTHOR_NAME)
    monkeypatch.setenv("SILO_AUTHOR_EMAIL", TEST_AUTHOR_EMAIL)


@pytest.fixture
def repo_path(tmp_path: Path) -> Path:
    """Location for a Silo repository that does not exist yet."""
    return tmp_path / "silo.git"


@pytest.fixture
def repository(repo_path: Path) -> Iterator[Repository]:
    """Create a prepared Silo repository."""
    with Repository(repo_path) as repo:
        yield repo


@pytest.fixture
def source_files(tmp_path: Path) -> SourceFiles:
    """Create files to store.

    Structure:
        tmp_path/
            source/
                example.txt
                other.bin
    """
    root = tmp_path / "source"
    root.mkdir()

    example = root / "example.txt"
    example.write_text("Example content\n")

    other = root / "other.bin"
    other.write_bytes(bytes(range(256)))

    return SourceFiles(root=root, example=example, other=other)


# ---------------------------------------------------------------------------
# Helper functions for creating git repositories without Silo
# ---------------------------------------------------------------------------


def commit_files(repo: Repo, files: Mapping[str, bytes], message: str) -> bytes:
    """Commit files directly with dulwich, bypassing Silo.

    Args:
        repo: Target repository.
        files: Repository-relative paths mapped to content.
        message: Commit message.

    Returns:
        The new commit SHA.
    """
    blobs: list[tuple[bytes, bytes, int]] = []
    for path, data in files.items():
        blob = Blob.from_string(data)
        repo.object_store.add_object(blob)
        blobs.append((path.encode(), blob.id, 0o100644))

    try:
        parents = [repo.head()]
    except KeyError:
        parents = []

    commit = Commit()
    commit.tree = commit_tree(repo.object_store, blobs)
    commit.parents = parents
    commit.author = commit.committer = b"Someone Else <someone@example.com>"
    commit.author_time = commit.commit_time = int(time.time())
    commit.author_timezone = commit.commit_timezone = 0
    commit.message = message.encode()
    repo.object_store.add_object(commit)
    repo.refs[b"HEAD"] = commit.id
    return commit.id


@pytest.fixture
def foreign_repo_path(tmp_path: Path) -> Path:
    """Create a bare git repository with history not managed by Silo."""
    path = tmp_path / "foreign.git"
    path.mkdir()
    repo = Repo.init_bare(str(path))
    try:
        _ = commit_files(repo, {"README.md": b"# Foreign\n"}, "Initial commit")
    finally:
        repo.close()
    return path
