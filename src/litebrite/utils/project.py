"""
Project root discovery utilities for litebrite.

This module provides functions for discovering project boundaries
by searching for marker files like .litebrite.json or .git/.
"""

from pathlib import Path

# Markers that indicate a project root, in order of priority
PROJECT_ROOT_MARKERS = [
    ".litebrite.json",  # Project configuration file
    ".git",  # Git repository (directory, or file in worktrees)
]


def find_project_root(start: Path | None = None) -> Path | None:
    """
    Find the project root directory by searching upward for marker files.

    Args:
        start: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the project root directory, or None if not found.

    Example:
        >>> find_project_root(Path("/project/deep/nested/dir"))
        PosixPath('/project')
    """
    if start is None:
        start = Path.cwd()

    current = start.resolve()
    for directory in (current, *current.parents):
        for marker in PROJECT_ROOT_MARKERS:
            if (directory / marker).exists():
                return directory

    return None

