"""Commit identity for Silo commits.

Name and email are resolved independently. Each takes the first value found
in this order:

1. The explicit argument
2. SILO_AUTHOR_NAME / SILO_AUTHOR_EMAIL
3. git config user.name / user.email
4. "Silo" / "silo@localhost"
"""

import os
import subprocess
from typing import Final

DEFAULT_AUTHOR_NAME: Final = "Silo"
DEFAULT_AUTHOR_EMAIL: Final = "silo@localhost"

_NAME_SOURCES: Final = ("SILO_AUTHOR_NAME", "user.name")
_EMAIL_SOURCES: Final = ("SILO_AUTHOR_EMAIL", "user.email")


def format_author_line(name: str | None = None, email: str | None = None) -> str:
    """Build a commit identity, filling gaps from the environment or git config.

    Args:
        name: Explicit author name.
        email: Explicit author email.

    Returns:
        Identity in "Name <email>" format.

    Example:
        >>> format_author_line("Jane", "jane@example.com")
        'Jane <jane@example.com>'
    """
    name = name or _lookup(*_NAME_SOURCES) or DEFAULT_AUTHOR_NAME
    email = email or _lookup(*_EMAIL_SOURCES) or DEFAULT_AUTHOR_EMAIL
    return f"{name} <{email}>"


def parse_author_line(author: bytes) -> tuple[str, str]:
    """Split a raw "Name <email>" commit identity.

    Args:
        author: Author field of a commit.

    Returns:
        Tuple of (name, email). The email is empty if the identity has no
        angle-bracketed part.
    """
    author_str = author.decode("utf-8", errors="replace")
    if "<" in author_str and author_str.endswith(">"):
        name_part, email_part = author_str.rsplit("<", 1)
        return name_part.strip(), email_part.rstrip(">")
    return author_str, ""


def _lookup(env_var: str, git_key: str) -> str | None:
    return os.environ.get(env_var) or _git_config(git_key)


def _git_config(key: str) -> str | None:
    """Read a value from the user's git config.

    Returns:
        The value, or None if it is unset or git is not installed.
    """
    try:
        result = subprocess.run(  # noqa: S603
            ["git", "config", "--get", key],  # noqa: S607
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None
