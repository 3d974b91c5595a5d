"""Utility modules for litebrite."""

from .project import find_project_root

__all__ = [
    "find_project_root",
]
