"""Scoped working tree binding.

A WorkTree is the directory staged file bytes are read from (or restored
files are written to) while a repository operation runs. It is passed
explicitly to the code that needs it; the process working directory and
GIT_WORK_TREE are never modified, so separate scopes do not interfere.
"""

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath
from typing import Final

from silo.exceptions import SiloPathError


class _Temporary(Enum):
    TEMPORARY = "temporary"


TEMPORARY: Final = _Temporary.TEMPORARY
"""Marker requesting a fresh temporary directory from work_tree()."""


@dataclass(frozen=True, slots=True)
class WorkTree:
    """A bound working tree directory.

    Attributes:
        path: Absolute path of the directory.
        temporary: Whether the directory is removed when the scope exits.
    """

    path: Path
    temporary: bool = False

    def resolve(self, name: str | PurePath) -> Path:
        """Resolve a name relative to the working tree.

        Symlinks are not followed, so a link inside the tree may point
        anywhere; only the name itself must stay inside.

        Args:
            name: Relative file name or path.

        Returns:
            Absolute path inside the working tree.

        Raises:
            SiloPathError: If the name is absolute or contains "..".
        """
        pure = PurePath(name)
        if pure.is_absolute() or ".." in pure.parts:
            msg = f"Path escapes the working tree: {name}"
            raise SiloPathError(msg, path=str(name), root=self.path)
        return self.path / pure

    def exists(self, name: str | PurePath) -> bool:
        return self.resolve(name).exists()

    def read_bytes(self, name: str | PurePath) -> bytes:
        """Read the current bytes of a file in the working tree."""
        return self.resolve(name).read_bytes()

    def write_bytes(self, name: str | PurePath, data: bytes) -> Path:
        """Write a file into the working tree, creating parent directories.

        Returns:
            The absolute path written.
        """
        target = self.resolve(name)
        target.parent.mkdir(parents=True, exist_ok=True)
        _ = target.write_bytes(data)
        return target

    def touch(self, name: str | PurePath) -> Path:
        """Create an empty file in the working tree if it does not exist.

        Returns:
            The absolute path touched.
        """
        target = self.resolve(name)
        target.touch()
        return target


@contextmanager
def work_tree(path: str | Path | _Temporary = ".") -> Iterator[WorkTree]:
    """Bind a working tree for the duration of a block.

    The temporary directory created for TEMPORARY is removed when the block
    exits, whether it returns normally or raises.

    Args:
        path: Directory to bind, or TEMPORARY for a fresh temporary directory.

    Yields:
        The bound WorkTree with an absolute path.

    Example:
        >>> with work_tree(TEMPORARY) as tree:
        ...     marker = tree.touch(".silo")
        >>> marker.exists()
        False
    """
    temporary = path is TEMPORARY
    if temporary:
        root = Path(tempfile.mkdtemp(prefix="silo-")).resolve()
    else:
        root = Path(path).expanduser().resolve()

    try:
        yield WorkTree(path=root, temporary=temporary)
    finally:
        if temporary:
            shutil.rmtree(root)
