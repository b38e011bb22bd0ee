import shutil
import subprocess
from pathlib import Path

import pytest


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.integration)


requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


def run_git(git_dir: Path, *args: str) -> str:
    """Run a git command against a bare repository and return its stdout."""
    result = subprocess.run(  # noqa: S603 - Safe: controlled git args
        ["git", f"--git-dir={git_dir}", *args],  # noqa: S607
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        msg = f"git {' '.join(args)} failed: {result.stderr}"
        raise RuntimeError(msg)
    return result.stdout


def init_bare_with_git(path: Path) -> None:
    """Create a bare repository with the git CLI."""
    subprocess.run(
        ["git", "init", "--bare", str(path)],  # noqa: S607
        capture_output=True,
        check=True,
    )
