"""Silo repository management.

This module provides the Repository class, which stores files in a bare git
repository with one commit per stored file.
"""

from contextlib import ExitStack
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePath, PurePosixPath
from types import TracebackType
from typing import TYPE_CHECKING, Final, Self, cast

from dulwich.diff_tree import tree_changes
from dulwich.errors import NotGitRepository, NotTreeError
from dulwich.file import FileLocked
from dulwich.object_store import iter_tree_contents, tree_lookup_path
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo

from silo.config import SiloConfig, load_config
from silo.exceptions import (
    AlreadyPreparedError,
    FileNotInRepositoryError,
    InvalidBackendRepositoryError,
    InvalidRepositoryError,
    NoSuchPathError,
    RepositoryConflictError,
    SiloPathError,
)
from silo.repository._models import CommitInfo, CommitResult
from silo.repository._staging import StagingIndex
from silo.repository._work_tree import TEMPORARY, work_tree
from silo.utils._author import format_author_line, parse_author_line
from silo.utils._git import decode_bytes, has_bare_repository_layout, is_empty_dir
from silo.utils._logging import create_logger, open_log_file

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

# Empty file at the tree root marking a repository as managed by Silo
MARKER: Final = ".silo"
_PREPARE_MESSAGE: Final = "Enabled Silo for this repository"

_HEAD: Final = b"HEAD"


class Repository:
    """A Silo repository backed by a bare git repository.

    Every stored file becomes one commit. The repository is "prepared" once
    its history contains the .silo marker; a repository with foreign history
    and no marker is rejected.

    The class implements the context manager protocol. When used as a context
    manager, the underlying dulwich Repo is closed when exiting the context.

    Attributes:
        path: The absolute path of the backing repository.

    Example:
        >>> with Repository("~/silo") as repo:
        ...     _ = repo.add("notes/todo.txt", "notes")
        ...     repo.read("notes/todo.txt")
        b'...'
    """

    __slots__: Final = ("_author", "_logger", "_path", "_repo", "_resources")

    def __init__(
        self,
        path: str | Path,
        *,
        create: bool = True,
        prepare: bool = True,
        author: str | None = None,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Open or create the repository at a path.

        Args:
            path: Location of the backing bare git repository.
            create: Create the backing git repository if it does not exist.
            prepare: Prepare the backing git repository for Silo if that has
                not been done yet.
            author: Commit identity as "Name <email>". Resolved from
                SILO_AUTHOR_NAME/SILO_AUTHOR_EMAIL or git config if None.
            logger: Logger for repository events. A stderr logger is
                created if None.

        Raises:
            InvalidBackendRepositoryError: If the path exists but is not a
                valid bare git repository.
            NoSuchPathError: If the path does not exist and `create` is False.
            InvalidRepositoryError: If the path holds a git repository with
                history that is not managed by Silo.
        """
        self._path: Path = Path(path).expanduser().resolve()
        self._resources: ExitStack = ExitStack()
        base_logger = logger if logger is not None else create_logger()
        self._logger: FilteringBoundLogger = base_logger.bind(
            repository=str(self._path)
        )
        self._author: bytes = (author or format_author_line()).encode()
        self._repo: Repo = self._open_backend(create=create)

        try:
            if not self.prepared and self.commit_count > 0:
                msg = f"Repository contains history not managed by Silo: {self._path}"
                raise InvalidRepositoryError(msg, path=self._path)

            if prepare and not self.prepared:
                _ = self.prepare()
        except Exception:
            self._repo.close()
            raise

    @classmethod
    def from_config(cls, path: str | Path, config: SiloConfig | None = None) -> Self:
        """Open or create a repository using Silo configuration.

        The configured log file stays open until the repository is closed.

        Args:
            path: Location of the backing bare git repository.
            config: Configuration to apply. Loaded from SILO_* environment
                variables if None.

        Returns:
            The repository.
        """
        if config is None:
            config = load_config()

        repository_config = config.repository
        with ExitStack() as stack:
            log_stream = (
                stack.enter_context(open_log_file(config.logging.file))
                if config.logging.file
                else None
            )
            logger = create_logger(
                log_stream,
                level=config.logging.level.value,
                log_format=config.logging.format.value,
            )
            repository = cls(
                path,
                create=repository_config.create,
                prepare=repository_config.prepare,
                author=format_author_line(
                    repository_config.author_name, repository_config.author_email
                ),
                logger=logger,
            )
            _ = repository._resources.enter_context(stack.pop_all())
        return repository

    # =========================================================================
    # Context Manager Protocol
    # =========================================================================

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying git repository.

        Releases file handles held by the dulwich Repo and the log file opened
        by from_config. This method is automatically called when using the
        context manager protocol.
        """
        self._repo.close()
        self._resources.close()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def path(self) -> Path:
        """The absolute path of the backing repository."""
        return self._path

    @property
    def head(self) -> str | None:
        """SHA of the current history tip, or None if there is no history."""
        head = self._get_head_sha()
        return decode_bytes(head) if head is not None else None

    @property
    def commit_count(self) -> int:
        """Number of commits reachable from the history tip."""
        head = self._get_head_sha()
        if head is None:
            return 0
        return sum(1 for _ in self._repo.get_walker(include=[head]))

    @property
    def prepared(self) -> bool:
        """Whether the history tip contains the Silo marker.

        Returns:
            True if the .silo marker exists at the root of the tip tree.
        """
        tree = self._get_head_tree()
        if tree is None:
            return False
        try:
            _ = tree_lookup_path(self._repo.__getitem__, tree, MARKER.encode())
        except KeyError:
            return False
        return True

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def prepare(self) -> CommitResult:
        """Prepare the backing git repository for use with Silo.

        Commits the empty .silo marker, staged from a temporary working tree
        that is removed afterwards.

        Returns:
            CommitResult for the marker commit.

        Raises:
            AlreadyPreparedError: If the repository has already been prepared.
        """
        if self.prepared:
            msg = f"Repository has already been prepared: {self._path}"
            raise AlreadyPreparedError(msg, path=self._path)

        with work_tree(TEMPORARY) as tree:
            _ = tree.touch(MARKER)
            index = self._new_staging_index()
            _ = index.put(MARKER, tree.read_bytes(MARKER))
            result = self._perform_commit(
                index, _PREPARE_MESSAGE, frozenset({MARKER})
            )

        self._logger.info("repository_prepared", sha=result.sha)
        return result

    # =========================================================================
    # Storage
    # =========================================================================

    def add(
        self, path: str | Path, prefix: str | PurePath | None = None
    ) -> CommitResult:
        """Store a file into the repository inside an optional prefix path.

        This adds one commit to the history of the repository including the
        file, or its new content if it was stored before.

        Args:
            path: The path of the file to store.
            prefix: Optional directory inside the repository to store the
                file in. The file is stored at the root if None or empty.

        Returns:
            CommitResult for the new commit.

        Raises:
            SiloPathError: If the prefix is absolute or contains "..", the
                stored path would be inside the Silo marker, or it clashes
                with a stored file or directory.
            OSError: If the file cannot be read. The history tip is unchanged.
            RepositoryConflictError: If the history tip moved during the commit.

        Example:
            >>> with Repository("~/silo") as repo:
            ...     result = repo.add("example.txt", "folder")
            ...     result.message
            "Added file example.txt into 'folder'"
        """
        source = Path(path)
        file_name = source.name
        normalized_prefix = self._normalize_prefix(prefix)
        stored_path = (
            file_name
            if normalized_prefix is None
            else f"{normalized_prefix}/{file_name}"
        )

        self._check_not_marker(stored_path)

        with work_tree(source.parent) as tree:
            index = self._new_staging_index()
            _ = index.put(stored_path, tree.read_bytes(file_name))
            message = f"Added file {file_name} into '{normalized_prefix or '.'}'"
            result = self._perform_commit(index, message, frozenset({stored_path}))

        self._logger.info(
            "file_added",
            source=str(tree.path / file_name),
            path=stored_path,
            sha=result.sha,
        )
        return result

    def remove(self, path: str | PurePath) -> CommitResult:
        """Remove a stored file, or every file below a stored directory.

        Args:
            path: Repository-relative path of a file or directory.

        Returns:
            CommitResult for the new commit.

        Raises:
            FileNotInRepositoryError: If nothing is stored at the path.
            SiloPathError: If the path is invalid or lies inside the Silo
                marker.
        """
        relative = self._normalize_repository_path(path)
        self._check_not_marker(relative)

        index = self._new_staging_index()
        removed = index.remove(relative)
        if not removed:
            msg = f"File not stored in repository: {relative}"
            raise FileNotInRepositoryError(msg, path=relative)

        result = self._perform_commit(
            index, f"Removed file {relative}", frozenset(removed)
        )
        self._logger.info("file_removed", path=relative, files=removed, sha=result.sha)
        return result

    def read(self, path: str | PurePath, *, commit: str | None = None) -> bytes:
        """Read the content of a stored file.

        Args:
            path: Repository-relative path of the file.
            commit: Commit SHA to read from. Defaults to the history tip.

        Returns:
            The stored bytes.

        Raises:
            FileNotInRepositoryError: If no file is stored at the path.
            KeyError: If the commit does not exist.
        """
        relative = self._normalize_repository_path(path)
        tree = self._get_commit_tree(commit)
        if tree is None:
            msg = f"File not stored in repository: {relative}"
            raise FileNotInRepositoryError(msg, path=relative)

        try:
            _, blob_sha = tree_lookup_path(
                self._repo.__getitem__, tree, relative.encode()
            )
        except (KeyError, NotTreeError) as e:
            msg = f"File not stored in repository: {relative}"
            raise FileNotInRepositoryError(msg, path=relative) from e

        blob = self._repo[blob_sha]
        if not isinstance(blob, Blob):
            msg = f"Not a file: {relative}"
            raise FileNotInRepositoryError(msg, path=relative)
        return blob.data

    def restore(
        self,
        path: str | PurePath,
        target: str | Path = ".",
        *,
        commit: str | None = None,
    ) -> Path:
        """Write a stored file back into a directory.

        Args:
            path: Repository-relative path of the file.
            target: Directory to write the file into, created if missing.
            commit: Commit SHA to restore from. Defaults to the history tip.

        Returns:
            The absolute path of the written file.

        Raises:
            FileNotInRepositoryError: If no file is stored at the path.
        """
        relative = self._normalize_repository_path(path)
        data = self.read(relative, commit=commit)

        with work_tree(target) as tree:
            written = tree.write_bytes(PurePosixPath(relative).name, data)

        self._logger.info("file_restored", path=relative, target=str(written))
        return written

    def contents(self, prefix: str | PurePath | None = None) -> list[str]:
        """List stored files.

        Args:
            prefix: Only list files inside this directory.

        Returns:
            Sorted repository-relative paths, without the Silo marker.
        """
        tree = self._get_head_tree()
        if tree is None:
            return []

        normalized_prefix = self._normalize_prefix(prefix)
        paths: list[str] = []
        for entry in iter_tree_contents(self._repo.object_store, tree):
            stored = decode_bytes(entry.path)
            if stored == MARKER:
                continue
            if normalized_prefix is not None and not stored.startswith(
                f"{normalized_prefix}/"
            ):
                continue
            paths.append(stored)
        return sorted(paths)

    # =========================================================================
    # History
    # =========================================================================

    def history(
        self, path: str | PurePath | None = None, *, n: int = 10
    ) -> list[CommitInfo]:
        """Get the most recent commits, optionally only those touching a path.

        Args:
            path: Repository-relative path of a file or directory.
            n: Maximum number of commits to return.

        Returns:
            List of CommitInfo in reverse chronological order (newest first).
            Returns an empty list if the repository has no commits.
        """
        head = self._get_head_sha()
        if head is None:
            return []

        paths = (
            [self._normalize_repository_path(path).encode()]
            if path is not None
            else None
        )
        walker = self._repo.get_walker(include=[head], max_entries=n, paths=paths)
        return [self._commit_to_info(entry.commit) for entry in walker]

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    def _open_backend(self, *, create: bool) -> Repo:
        """Open the bare git repository at the path, creating it if allowed."""
        path = self._path

        if not path.exists():
            if not create:
                msg = f"No such path: {path}"
                raise NoSuchPathError(msg, path=path)
            path.mkdir(parents=True)
            return self._init_backend()

        if not path.is_dir():
            msg = f"Not a git repository: {path}"
            raise InvalidBackendRepositoryError(msg, path=path)

        if is_empty_dir(path):
            if not create:
                msg = f"Not a git repository: {path}"
                raise InvalidBackendRepositoryError(msg, path=path)
            return self._init_backend()

        if not has_bare_repository_layout(path):
            msg = f"Not a bare git repository: {path}"
            raise InvalidBackendRepositoryError(msg, path=path)

        try:
            repo = Repo(str(path), bare=True)
        except NotGitRepository as e:
            msg = f"Not a git repository: {path}"
            raise InvalidBackendRepositoryError(msg, path=path) from e

        self._logger.debug("repository_opened")
        return repo

    def _init_backend(self) -> Repo:
        repo = Repo.init_bare(str(self._path))
        self._logger.info("repository_created")
        return repo

    def _get_head_sha(self) -> bytes | None:
        """Get the history tip.

        Returns:
            The tip commit SHA as hex bytes, or None if no commits exist.
        """
        try:
            return self._repo.head()
        except KeyError:
            return None

    def _get_head_tree(self) -> bytes | None:
        head = self._get_head_sha()
        if head is None:
            return None
        return cast("Commit", self._repo[head]).tree

    def _get_commit_tree(self, commit: str | None) -> bytes | None:
        """Get the tree of a commit, or of the tip if commit is None.

        Raises:
            KeyError: If the commit does not exist.
        """
        if commit is None:
            return self._get_head_tree()

        obj = self._repo[commit.encode()]
        if not isinstance(obj, Commit):
            msg = f"Not a commit: {commit}"
            raise KeyError(msg)
        return obj.tree

    def _new_staging_index(self) -> StagingIndex:
        """Create a staging index seeded from the history tip."""
        index = StagingIndex(self._repo.object_store)
        head = self._get_head_sha()
        if head is not None:
            index.seed_from(head)
        return index

    def _perform_commit(
        self, index: StagingIndex, message: str, files: frozenset[str]
    ) -> CommitResult:
        """Commit a staging index and advance the history tip.

        The tip is moved with a compare-and-swap against the commit the index
        was seeded from. If another writer moved the tip in the meantime the
        tip is left alone and the new commit stays unreferenced.

        Args:
            index: The staged tree.
            message: Commit message.
            files: Repository-relative paths touched by the commit.

        Returns:
            CommitResult with the new tip.

        Raises:
            RepositoryConflictError: If the history tip moved concurrently.
        """
        commit_id = index.commit(message, author=self._author)

        try:
            if index.base is None:
                updated = self._repo.refs.add_if_new(_HEAD, commit_id)
            else:
                updated = self._repo.refs.set_if_equals(_HEAD, index.base, commit_id)
        except FileLocked:
            # Another writer holds the HEAD lock
            updated = False

        commit_sha = decode_bytes(commit_id)
        if not updated:
            expected = decode_bytes(index.base) if index.base is not None else "none"
            self._logger.warning("commit_conflict", expected=expected, sha=commit_sha)
            msg = f"Concurrent modification detected: expected tip={expected}"
            raise RepositoryConflictError(
                msg, path=self._path, details=f"Commit SHA: {commit_sha}"
            )

        return CommitResult(sha=commit_sha, files=files, message=message)

    def _normalize_prefix(self, prefix: str | PurePath | None) -> str | None:
        """Normalize a prefix to a POSIX path, or None for the root.

        Raises:
            SiloPathError: If the prefix is absolute or contains "..".
        """
        if prefix is None:
            return None

        pure = PurePosixPath(PurePath(prefix).as_posix())
        if pure.is_absolute() or ".." in pure.parts:
            msg = f"Path escapes the repository: {prefix}"
            raise SiloPathError(msg, path=str(prefix), root=self._path)

        normalized = pure.as_posix()
        return None if normalized == "." else normalized

    def _normalize_repository_path(self, path: str | PurePath) -> str:
        """Normalize a repository-relative path to a POSIX path.

        Raises:
            SiloPathError: If the path is empty, absolute or contains "..".
        """
        normalized = self._normalize_prefix(path)
        if normalized is None:
            msg = f"Path does not name a stored file: {path!s}"
            raise SiloPathError(msg, path=str(path), root=self._path)
        return normalized

    def _check_not_marker(self, relative: str) -> None:
        """Reject a normalized path that is, or lies inside, the Silo marker.

        Raises:
            SiloPathError: If the first path segment is the marker.
        """
        if PurePosixPath(relative).parts[:1] == (MARKER,):
            msg = f"The {MARKER} marker can not be modified: {relative}"
            raise SiloPathError(msg, path=relative, root=self._path)

    def _commit_to_info(self, commit: Commit) -> CommitInfo:
        """Convert a dulwich commit to CommitInfo."""
        author_name, author_email = parse_author_line(commit.author)
        tz = timezone(timedelta(seconds=commit.author_timezone))

        return CommitInfo(
            sha=decode_bytes(commit.id),
            message=commit.message.decode("utf-8", errors="replace"),
            author_name=author_name,
            author_email=author_email,
            timestamp=datetime.fromtimestamp(commit.author_time, tz=tz),
            files_changed=self._count_files_changed(commit),
            parent_shas=tuple(decode_bytes(p) for p in commit.parents),
        )

    def _count_files_changed(self, commit: Commit) -> int:
        """Count files changed in a commit.

        Compares the commit tree to its first parent's tree, or counts all
        files for the initial commit.
        """
        store = self._repo.object_store
        if not commit.parents:
            return sum(1 for _ in iter_tree_contents(store, commit.tree))

        parent = cast("Commit", self._repo[commit.parents[0]])
        return len(list(tree_changes(store, parent.tree, commit.tree)))
