"""Shared types for nassync.

This module defines enums used by the sync engine, the error log and the CLI.
"""

from __future__ import annotations

from enum import Enum


class Classification(str, Enum):
    """Outcome of comparing one local file against its remote counterpart."""

    NEW = "new"  # No remote counterpart
    IDENTICAL = "identical"  # Remote counterpart with matching size
    SIZE_MISMATCH = "size_mismatch"
    CHECKSUM_MISMATCH = "checksum_mismatch"  # Reported by rsync after a checksum run

    @property
    def needs_transfer(self) -> bool:
        """Whether a file with this classification must be pushed."""
        return self is not Classification.IDENTICAL


class ErrorKind(str, Enum):
    """Kind of a session error log record."""

    TRANSFER_FAILED = "TransferFailed"  # One per-file attempt failed
    SYNC_FAILED = "SyncFailed"  # One whole-tree attempt failed
    CRITICAL = "Critical"  # A task exhausted its retry budget
    SOURCE_MISSING = "SourceMissing"  # Configured source directory not found


class TransferKind(str, Enum):
    """Granularity of a transfer task."""

    FILE = "file"
    TREE = "tree"
