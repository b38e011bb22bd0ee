"""Silo exceptions."""

from pathlib import Path


class SiloError(Exception):
    """Base exception for Silo errors.

    Attributes:
        path: The filesystem or repository path the error relates to.
    """

    def __init__(self, message: str, *, path: Path | str | None = None) -> None:
        """Initialize with error message and path context.

        Args:
            message: Human-readable error message.
            path: The path the error relates to.
        """
        super().__init__(message)
        self.path: Path | str | None = path


# =============================================================================
# Repository Construction Exceptions
# =============================================================================


class InvalidBackendRepositoryError(SiloError):
    """Raised when a path has contents but is not a bare git repository."""


class NoSuchPathError(SiloError):
    """Raised when the repository path does not exist and creation is disabled."""


class InvalidRepositoryError(SiloError):
    """Raised when a git repository has history that is not managed by Silo."""


class AlreadyPreparedError(SiloError):
    """Raised when preparing a repository that has already been prepared."""


# =============================================================================
# Repository Operation Exceptions
# =============================================================================


class RepositoryConflictError(SiloError):
    """Raised when the history tip moved while a commit was being written.

    Attributes:
        details: Additional details about the conflict.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        details: str | None = None,
    ) -> None:
        """Initialize with error message and conflict context.

        Args:
            message: Human-readable error message.
            path: The repository path where the conflict occurred.
            details: Additional details about the conflict.
        """
        super().__init__(message, path=path)
        self.details: str | None = details


class FileNotInRepositoryError(SiloError, KeyError):
    """Raised when a repository-relative path is not stored in the repository."""

    def __str__(self) -> str:
        # KeyError.__str__ would wrap the message in quotes
        return str(self.args[0]) if self.args else ""


class SiloPathError(SiloError, ValueError):
    """Raised when a path escapes its root or targets a reserved entry.

    Attributes:
        root: The root directory the path was expected to stay within.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        root: Path | str | None = None,
    ) -> None:
        """Initialize with error message and path violation context.

        Args:
            message: Human-readable error message.
            path: The path that violated the constraint.
            root: The root directory the path was expected to stay within.
        """
        super().__init__(message, path=path)
        self.root: Path | str | None = root


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(SiloError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded, parsed or validated."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message, path=path)
        self.line: int | None = line
        self.column: int | None = column
