"""Shared types and dataclasses for sync operations.

This module provides:
- ConfigurationError: Re-exported from nassync.core.config
- LocalFile: A scanned local file and its remote counterpart path
- ClassificationReport: Transfer / identical buckets for one source
- TransferTask: A unit of transfer work
- TransferResult: Outcome of one rsync invocation
- ErrorRecord: One entry of the session error log
- SessionSummary: Overall session result
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path

from nassync.core.config import ConfigurationError, SourceFolder
from nassync.core.types import Classification, ErrorKind, TransferKind

__all__ = [
    "ClassificationReport",
    "ConfigurationError",
    "ErrorRecord",
    "LocalFile",
    "SessionSummary",
    "TransferResult",
    "TransferTask",
]


@dataclass(frozen=True)
class LocalFile:
    """A local file found while scanning a source folder.

    Attributes:
        local_path: Absolute local path.
        relative_path: Path relative to the source root, "/" separated.
        remote_path: Full remote path the file is replicated to.
        size: Size in bytes.
        mtime: Modification time in whole seconds since epoch.
        is_symlink: The entry is a symbolic link (size and mtime are the
            link's own, not its target's).
    """

    local_path: Path
    relative_path: str
    remote_path: str
    size: int
    mtime: int
    is_symlink: bool = False


@dataclass
class ClassificationReport:
    """Result of classifying one source folder."""

    source: SourceFolder
    to_transfer: list[LocalFile] = field(default_factory=list)
    identical: list[LocalFile] = field(default_factory=list)
    classifications: dict[str, Classification] = field(default_factory=dict)

    def add(self, file: LocalFile, classification: Classification, transfer: bool) -> None:
        """Record a classified file in the matching bucket."""
        self.classifications[file.relative_path] = classification
        if transfer:
            self.to_transfer.append(file)
        else:
            self.identical.append(file)

    def counts(self) -> dict[Classification, int]:
        """Count files per classification."""
        counts = {c: 0 for c in Classification}
        for classification in self.classifications.values():
            counts[classification] += 1
        return counts

    @property
    def is_empty(self) -> bool:
        """Check if the source held no files."""
        return not self.to_transfer and not self.identical


@dataclass
class TransferTask:
    """A unit of transfer work owned by the orchestrator.

    Attributes:
        kind: FILE for a single file, TREE for a whole source folder.
        source: Source folder the task belongs to.
        local_path: File or directory to push.
        remote_path: Remote file path, or the remote prefix for trees.
        file: Scanned file for FILE tasks.
        classification: Classification that caused the transfer (FILE tasks).
    """

    kind: TransferKind
    source: SourceFolder
    local_path: Path
    remote_path: str
    file: LocalFile | None = None
    classification: Classification | None = None

    @classmethod
    def for_file(
        cls, source: SourceFolder, file: LocalFile, classification: Classification
    ) -> TransferTask:
        """Create a single-file task."""
        return cls(
            kind=TransferKind.FILE,
            source=source,
            local_path=file.local_path,
            remote_path=file.remote_path,
            file=file,
            classification=classification,
        )

    @classmethod
    def for_tree(cls, source: SourceFolder) -> TransferTask:
        """Create a whole-tree task."""
        return cls(
            kind=TransferKind.TREE,
            source=source,
            local_path=source.local_path,
            remote_path=source.remote_prefix,
        )

    @property
    def subject(self) -> str:
        """Human-readable subject for logs."""
        return str(self.local_path)

    @property
    def failure_kind(self) -> ErrorKind:
        """Error kind recorded when one attempt of this task fails."""
        if self.kind == TransferKind.TREE:
            return ErrorKind.SYNC_FAILED
        return ErrorKind.TRANSFER_FAILED


@dataclass
class TransferResult:
    """Outcome of one transfer invocation.

    Attributes:
        success: Exit status was zero. The only signal used for retries.
        returncode: Process exit status (-1 if rsync could not be started).
        itemized: Change lines from rsync --itemize-changes.
        error: stderr excerpt or launch error, if any.
    """

    success: bool
    returncode: int = 0
    itemized: list[str] = field(default_factory=list)
    error: str | None = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def changed(self) -> bool:
        """Check if rsync reported sending file content."""
        return any(line[:2] in (">f", "<f") for line in self.itemized)


@dataclass(frozen=True)
class ErrorRecord:
    """One line of the session error log."""

    timestamp: float
    subject: str
    kind: ErrorKind
    detail: str = ""

    @classmethod
    def create(cls, subject: str, kind: ErrorKind, detail: str = "") -> ErrorRecord:
        """Create a record stamped with the current time."""
        return cls(timestamp=time.time(), subject=subject, kind=kind, detail=detail)

    def format(self) -> str:
        """Format as one human-readable log line."""
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.timestamp))
        line = f"{stamp} [{self.kind.value}] {self.subject}"
        if self.detail:
            line += f": {self.detail}"
        return line


@dataclass
class SessionSummary:
    """Result of a sync session."""

    error_counts: dict[ErrorKind, int]
    classification_counts: dict[Classification, int]
    sources_processed: list[str]
    sources_skipped: list[str]
    transferred: int = 0
    failed: int = 0
    error_log_file: Path | None = None

    @property
    def clean(self) -> bool:
        """Check if the session ended with an empty error log."""
        return sum(self.error_counts.values()) == 0

    @property
    def status_text(self) -> str:
        """Get 'success' or 'completed with errors'."""
        return "success" if self.clean else "completed with errors"
