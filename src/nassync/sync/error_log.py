"""Session error log.

Append-only record of every failure event in a session. Written out once at
the end of the session and never read back.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from nassync.core.types import ErrorKind
from nassync.sync.types import ErrorRecord

logger = logging.getLogger(__name__)


class SessionErrorLog:
    """Ordered, thread-safe list of ErrorRecord objects."""

    def __init__(self) -> None:
        self._records: list[ErrorRecord] = []
        self._lock = threading.Lock()

    def append(self, subject: str, kind: ErrorKind, detail: str = "") -> ErrorRecord:
        """Record a failure event.

        Args:
            subject: File or directory the event is about.
            kind: Failure kind.
            detail: Optional extra context (exit status, stderr excerpt).

        Returns:
            The stored record.
        """
        record = ErrorRecord.create(subject, kind, detail)
        with self._lock:
            self._records.append(record)
        logger.debug(f"Error log: {record.format()}")
        return record

    @property
    def records(self) -> list[ErrorRecord]:
        """Get a copy of the records in insertion order."""
        with self._lock:
            return list(self._records)

    def counts(self) -> dict[ErrorKind, int]:
        """Count records per kind (every kind present, zero if unused)."""
        counts = {kind: 0 for kind in ErrorKind}
        with self._lock:
            for record in self._records:
                counts[record.kind] += 1
        return counts

    def count(self, kind: ErrorKind) -> int:
        """Count records of one kind."""
        with self._lock:
            return sum(1 for record in self._records if record.kind == kind)

    def write(self, path: Path) -> None:
        """Append all records to the error log file, one line each."""
        records = self.records
        if not records:
            return
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8", errors="backslashreplace") as f:
            for record in records:
                f.write(record.format() + "\n")
        logger.debug(f"Wrote {len(records)} error record(s) to {path}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __bool__(self) -> bool:
        return len(self) > 0
