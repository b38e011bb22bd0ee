"""In-memory staging index.

A bare repository has no on-disk index, so each commit is built from a
StagingIndex: the flattened tree of a base commit plus the blobs written by
one operation.
"""

import time
from typing import Final

from dulwich.index import commit_tree
from dulwich.object_store import BaseObjectStore, iter_tree_contents
from dulwich.objects import Blob, Commit

from silo.exceptions import SiloPathError
from silo.utils._git import decode_bytes

# Git mode for regular, non-executable files
_GIT_FILE_MODE: Final = 0o100644


class StagingIndex:
    """Paths and blobs that make up the tree of the next commit.

    Attributes:
        base: SHA of the commit the index was seeded from, or None when the
            index started empty.

    Example:
        >>> index = StagingIndex(repo.object_store)
        >>> index.seed_from(repo.head())
        >>> _ = index.put("folder/example.txt", b"content")
        >>> commit_id = index.commit("Added file", author=b"Silo <silo@localhost>")
    """

    __slots__: Final = ("_entries", "_object_store", "base")

    def __init__(self, object_store: BaseObjectStore) -> None:
        self._object_store: BaseObjectStore = object_store
        self._entries: dict[bytes, tuple[bytes, int]] = {}
        self.base: bytes | None = None

    def __contains__(self, path: object) -> bool:
        if isinstance(path, str):
            path = path.encode()
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def paths(self) -> list[str]:
        """Return the staged repository-relative paths in sorted order."""
        return sorted(decode_bytes(p) for p in self._entries)

    def seed_from(self, commit_id: bytes) -> None:
        """Replace the staged entries with the tree of a commit.

        Args:
            commit_id: Hex SHA of the commit to start from.
        """
        commit = self._object_store[commit_id]
        if not isinstance(commit, Commit):
            msg = f"Not a commit: {decode_bytes(commit_id)}"
            raise KeyError(msg)

        self._entries = {
            entry.path: (entry.sha, entry.mode)
            for entry in iter_tree_contents(self._object_store, commit.tree)
        }
        self.base = commit_id

    def put(self, path: str, data: bytes, *, mode: int = _GIT_FILE_MODE) -> bytes:
        """Store bytes as a blob and stage them under a path.

        Any entry already staged at the path is replaced. A path can not be
        both a file and a directory in one tree.

        Args:
            path: Repository-relative POSIX path.
            data: File content.
            mode: Git file mode.

        Returns:
            The blob SHA.

        Raises:
            SiloPathError: If a parent of the path is a staged file, or
                staged files exist below the path.
        """
        key = path.encode()
        clash = self._find_clash(key)
        if clash is not None:
            msg = f"Path {path} clashes with stored file {decode_bytes(clash)}"
            raise SiloPathError(msg, path=path)

        blob = Blob.from_string(data)
        self._object_store.add_object(blob)
        self._entries[key] = (blob.id, mode)
        return blob.id

    def _find_clash(self, key: bytes) -> bytes | None:
        """Find a staged entry that would turn a file into a directory."""
        parts = key.split(b"/")
        for depth in range(1, len(parts)):
            parent = b"/".join(parts[:depth])
            if parent in self._entries:
                return parent

        below = key + b"/"
        return next((p for p in self._entries if p.startswith(below)), None)

    def remove(self, path: str) -> list[str]:
        """Unstage a file, or every file below a directory.

        Args:
            path: Repository-relative POSIX path of a file or directory.

        Returns:
            Sorted paths that were removed (empty if nothing matched).
        """
        exact = path.encode()
        below = exact + b"/"
        removed = [p for p in self._entries if p == exact or p.startswith(below)]
        for p in removed:
            del self._entries[p]
        return sorted(decode_bytes(p) for p in removed)

    def write_tree(self) -> bytes:
        """Write the staged entries as tree objects.

        Returns:
            SHA of the root tree.
        """
        blobs = [(path, sha, mode) for path, (sha, mode) in self._entries.items()]
        return commit_tree(self._object_store, blobs)

    def commit(
        self, message: str, *, author: bytes, parent: bytes | None = None
    ) -> bytes:
        """Write a commit of the staged tree into the object store.

        The commit is not referenced by any ref yet; advancing the history tip
        is up to the caller.

        Args:
            message: Commit message.
            author: Author and committer identity as "Name <email>".
            parent: Parent commit SHA. Defaults to the seeded base commit.

        Returns:
            SHA of the new commit.
        """
        if parent is None:
            parent = self.base

        commit = Commit()
        commit.tree = self.write_tree()
        commit.parents = [parent] if parent is not None else []
        commit.author = commit.committer = author
        commit.author_time = commit.commit_time = int(time.time())
        commit.author_timezone = commit.commit_timezone = 0
        commit.encoding = b"UTF-8"
        commit.message = message.encode()
        self._object_store.add_object(commit)
        return commit.id
