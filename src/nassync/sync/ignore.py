"""Exclude patterns for file replication.

This module provides:
- IgnorePatterns: fnmatch-style pattern matching on relative paths

Only configured patterns apply. With none, every file is replicated.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path


class IgnorePatterns:
    """Handles exclude pattern matching for file paths."""

    def __init__(self, patterns: list[str] | None = None) -> None:
        """Initialize with patterns.

        Args:
            patterns: Glob patterns (EXCLUDE setting).
        """
        self._patterns = [p for p in patterns or [] if p]

    @property
    def patterns(self) -> list[str]:
        """Get all active patterns."""
        return list(self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """Add an exclude pattern."""
        self._patterns.append(pattern)

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be left out.

        Args:
            path: Absolute path to check.
            base_path: Source folder root.

        Returns:
            True if the path matches a pattern.
        """
        try:
            rel_path = path.relative_to(base_path)
        except ValueError:
            return False

        rel_str = str(rel_path).replace("\\", "/")

        for pattern in self._patterns:
            # Directory patterns ("build/") match the directory and its contents
            if pattern.endswith("/"):
                pattern = pattern[:-1]
                if fnmatch.fnmatch(rel_str, pattern) or any(
                    fnmatch.fnmatch(part, pattern) for part in rel_str.split("/")[:-1]
                ):
                    return True
                if path.is_dir() and fnmatch.fnmatch(path.name, pattern):
                    return True
            elif fnmatch.fnmatch(rel_str, pattern) or fnmatch.fnmatch(path.name, pattern):
                return True

        return False

    def rsync_args(self) -> list[str]:
        """Get the patterns as rsync --exclude arguments."""
        return [f"--exclude={pattern}" for pattern in self._patterns]
