"""Property-based tests for Repository invariants.

This module uses Hypothesis to test key invariants of the Repository class:
- Round trip: a stored file reads back byte for byte
- Growth: every add and remove grows the history by exactly one commit
- Versioning: older content stays readable at its commit
- Prefix containment: escaping prefixes never change the history tip
- Stateful testing: operation sequences keep the repository prepared, reject
  file/directory clashes and never lose a stored file
"""

import tempfile
from pathlib import Path

import pytest
from hypothesis import HealthCheck, assume, given, settings, strategies as st
from hypothesis.stateful import (
    Bundle,
    MultipleResults,
    RuleBasedStateMachine,
    initialize,
    invariant,
    multiple,
    precondition,
    rule,
)

from silo.exceptions import SiloPathError
from silo.repository import MARKER, Repository

# =============================================================================
# Strategies
# =============================================================================

# Lowercase avoids case-sensitivity issues on macOS
_SAFE_FILENAME_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789-_"

safe_filename = st.text(
    alphabet=_SAFE_FILENAME_ALPHABET, min_size=1, max_size=20
).filter(lambda x: x not in {".", "..", ".git"})

# Relative prefixes inside the repository (0-3 components)
valid_prefix = st.lists(safe_filename, min_size=0, max_size=3).map("/".join)

file_content = st.binary(min_size=0, max_size=512)

escaping_prefix = st.sampled_from(
    [
        "..",
        "../outside",
        "a/../..",
        "a/b/../../../c",
        "/absolute",
        "/",
    ]
)

_SETTINGS = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


# =============================================================================
# Fixture Helpers
# =============================================================================


def create_repository() -> tuple[Repository, Path, tempfile.TemporaryDirectory[str]]:
    """Create a fresh prepared Repository in a temporary directory.

    Returns:
        Tuple of (Repository, source_dir, TemporaryDirectory).
        The TemporaryDirectory must be kept alive for cleanup.
    """
    tmpdir = tempfile.TemporaryDirectory()
    root = Path(tmpdir.name)
    source_dir = root / "source"
    source_dir.mkdir()
    return Repository(root / "silo.git"), source_dir, tmpdir


def write_source(source_dir: Path, name: str, content: bytes) -> Path:
    path = source_dir / name
    _ = path.write_bytes(content)
    return path


# =============================================================================
# Round Trip Properties
# =============================================================================


class TestRoundTripProperties:
    """Properties for storing and reading back files."""

    @given(name=safe_filename, prefix=valid_prefix, content=file_content)
    @_SETTINGS
    def test_stored_file_reads_back(
        self, name: str, prefix: str, content: bytes
    ) -> None:
        """Property: read(add(file)) returns the file's bytes."""
        repo, source_dir, tmpdir = create_repository()
        try:
            result = repo.add(write_source(source_dir, name, content), prefix)

            (stored,) = result.files
            assert stored == (f"{prefix}/{name}" if prefix else name)
            assert repo.read(stored) == content
            assert stored in repo.contents()
        finally:
            repo.close()
            tmpdir.cleanup()

    @given(name=safe_filename, prefix=valid_prefix)
    @_SETTINGS
    def test_message_names_file_and_prefix(self, name: str, prefix: str) -> None:
        """Property: the commit message names the file and its prefix."""
        repo, source_dir, tmpdir = create_repository()
        try:
            result = repo.add(write_source(source_dir, name, b"x"), prefix)

            assert result.message == f"Added file {name} into '{prefix or '.'}'"
            assert repo.history(n=1)[0].message == result.message
        finally:
            repo.close()
            tmpdir.cleanup()


# =============================================================================
# History Growth Properties
# =============================================================================


class TestHistoryGrowthProperties:
    """Properties for the commit count."""

    @given(names=st.lists(safe_filename, min_size=1, max_size=5))
    @_SETTINGS
    def test_each_add_adds_one_commit(self, names: list[str]) -> None:
        """Property: N adds produce exactly N new commits."""
        repo, source_dir, tmpdir = create_repository()
        try:
            baseline = repo.commit_count
            for name in names:
                _ = repo.add(write_source(source_dir, name, name.encode()))

            assert repo.commit_count == baseline + len(names)
            assert repo.prepared is True
        finally:
            repo.close()
            tmpdir.cleanup()

    @given(contents=st.lists(file_content, min_size=2, max_size=4))
    @_SETTINGS
    def test_every_version_stays_readable(self, contents: list[bytes]) -> None:
        """Property: each stored version is readable at its own commit."""
        repo, source_dir, tmpdir = create_repository()
        try:
            shas: list[str] = []
            for content in contents:
                source = write_source(source_dir, "file.txt", content)
                shas.append(repo.add(source).sha)

            for sha, content in zip(shas, contents, strict=True):
                assert repo.read("file.txt", commit=sha) == content
            assert repo.read("file.txt") == contents[-1]
        finally:
            repo.close()
            tmpdir.cleanup()


# =============================================================================
# Prefix Containment Properties
# =============================================================================


class TestPrefixContainmentProperties:
    """Properties for prefixes that leave the repository root."""

    @given(prefix=escaping_prefix, name=safe_filename)
    @_SETTINGS
    def test_escaping_prefix_never_commits(self, prefix: str, name: str) -> None:
        """Property: an escaping prefix raises and leaves the tip unchanged."""
        repo, source_dir, tmpdir = create_repository()
        try:
            head = repo.head
            source = write_source(source_dir, name, b"content")

            try:
                _ = repo.add(source, prefix)
            except SiloPathError:
                pass
            else:
                msg = f"prefix {prefix!r} was accepted"
                raise AssertionError(msg)

            assert repo.head == head
        finally:
            repo.close()
            tmpdir.cleanup()


# =============================================================================
# Stateful Testing
# =============================================================================


class RepositoryStateMachine(RuleBasedStateMachine):
    """Stateful test for Repository operations.

    Tracks the expected stored files in a dict and checks that the repository
    agrees after every step.
    """

    stored = Bundle("stored")

    def __init__(self) -> None:
        super().__init__()
        self._repo: Repository | None = None
        self._source_dir: Path | None = None
        self._tmpdir: tempfile.TemporaryDirectory[str] | None = None
        self._expected: dict[str, bytes] = {}
        self._commits: int = 0

    @initialize()
    def init_repo(self) -> None:
        """Initialize repository state."""
        self._repo, self._source_dir, self._tmpdir = create_repository()
        self._expected = {}
        self._commits = self._repo.commit_count

    def teardown(self) -> None:
        """Cleanup after tests."""
        if self._repo is not None:
            self._repo.close()
        if self._tmpdir is not None:
            self._tmpdir.cleanup()

    @rule(target=stored, name=safe_filename, prefix=valid_prefix, content=file_content)
    def add_file(
        self, name: str, prefix: str, content: bytes
    ) -> str | MultipleResults[str]:
        """Store a file and record its expected content."""
        assert self._repo is not None  # For type narrowing
        assert self._source_dir is not None
        stored_path = f"{prefix}/{name}" if prefix else name
        source = write_source(self._source_dir, name, content)
        # A file and a directory can not share a path
        if any(
            existing.startswith(f"{stored_path}/")
            or stored_path.startswith(f"{existing}/")
            for existing in self._expected
        ):
            with pytest.raises(SiloPathError):
                _ = self._repo.add(source, prefix)
            return multiple()

        _ = self._repo.add(source, prefix)
        self._expected[stored_path] = content
        self._commits += 1
        return stored_path

    @rule(name=safe_filename, nested=valid_prefix)
    def add_into_marker(self, name: str, nested: str) -> None:
        """Try to store a file inside the marker."""
        assert self._repo is not None  # For type narrowing
        assert self._source_dir is not None
        prefix = f"{MARKER}/{nested}" if nested else MARKER

        with pytest.raises(SiloPathError):
            _ = self._repo.add(write_source(self._source_dir, name, b"x"), prefix)

    @rule(path=stored)
    @precondition(lambda self: bool(self._expected))
    def remove_file(self, path: str) -> None:
        """Remove a stored file if it is still present."""
        assert self._repo is not None  # For type narrowing
        assume(path in self._expected)

        _ = self._repo.remove(path)
        del self._expected[path]
        self._commits += 1

    @rule(path=stored)
    def read_file(self, path: str) -> None:
        """Read a stored file back."""
        assert self._repo is not None  # For type narrowing
        assume(path in self._expected)

        assert self._repo.read(path) == self._expected[path]

    @invariant()
    def contents_match_expected(self) -> None:
        """Invariant: contents() lists exactly the expected files."""
        if self._repo is None:
            return
        assert self._repo.contents() == sorted(self._expected)

    @invariant()
    def stored_files_survive(self) -> None:
        """Invariant: every stored, not removed file is listed and readable."""
        if self._repo is None:
            return
        contents = set(self._repo.contents())
        for path, content in self._expected.items():
            assert path in contents
            assert self._repo.read(path) == content

    @invariant()
    def commit_count_matches_operations(self) -> None:
        """Invariant: every successful operation added one commit."""
        if self._repo is None:
            return
        assert self._repo.commit_count == self._commits

    @invariant()
    def stays_prepared(self) -> None:
        """Invariant: the marker is never lost."""
        if self._repo is None:
            return
        assert self._repo.prepared is True
        assert MARKER not in self._repo.contents()


# Create test case class for pytest discovery with limited examples and deadline
TestRepositoryStateMachine = RepositoryStateMachine.TestCase
TestRepositoryStateMachine.settings = settings(
    max_examples=20,
    stateful_step_count=10,
    deadline=None,  # Disable deadline for I/O-bound tests
)
