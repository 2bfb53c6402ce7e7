"""Persisted checksum cache.

This module provides:
- CacheEntry: Fingerprint of a file and the mtime it was computed against
- ChecksumCache: Path-keyed fingerprint store loaded and saved once per session

File format:
    One record per line, `path|fingerprint|mtime`. Lines that do not parse
    are skipped on load. Paths may contain "|", so records are split from
    the right. File names that are not valid UTF-8 are stored through
    surrogateescape, so they load back to the same str path.

The cache is rewritten in full on save, through a temporary file renamed over
the previous one, so an interrupted save never leaves a truncated file behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from nassync.core.hashing import compute_file_hash, file_mtime

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"


@dataclass(frozen=True)
class CacheEntry:
    """Cached fingerprint for one file."""

    fingerprint: str
    mtime: int

    def is_valid_for(self, current_mtime: int) -> bool:
        """Check if the entry was computed against the given mtime."""
        return self.mtime == current_mtime


def parse_line(line: str) -> tuple[str, CacheEntry] | None:
    """Parse one cache record.

    Args:
        line: A `path|fingerprint|mtime` line.

    Returns:
        (path, entry) tuple, or None if the line is malformed.
    """
    line = line.rstrip("\r\n")
    parts = line.rsplit(FIELD_SEPARATOR, 2)
    if len(parts) != 3:
        return None
    path, fingerprint, mtime_str = parts
    if not path or not fingerprint:
        return None
    try:
        mtime = int(mtime_str)
    except ValueError:
        return None
    return path, CacheEntry(fingerprint=fingerprint, mtime=mtime)


def load_entries(path: Path) -> dict[str, CacheEntry]:
    """Load cache entries from disk.

    Args:
        path: Cache file location.

    Returns:
        Mapping of file path to entry. Empty if the file does not exist.
    """
    entries: dict[str, CacheEntry] = {}
    path = Path(path)
    if not path.exists():
        logger.debug(f"No checksum cache at {path}, starting empty")
        return entries

    skipped = 0
    with open(path, encoding="utf-8", errors="surrogateescape") as f:
        for line in f:
            if not line.strip():
                continue
            parsed = parse_line(line)
            if parsed is None:
                skipped += 1
                continue
            file_path, entry = parsed
            entries[file_path] = entry

    if skipped:
        logger.debug(f"Skipped {skipped} malformed line(s) in {path}")
    logger.debug(f"Loaded {len(entries)} checksum cache entries from {path}")
    return entries


class ChecksumCache:
    """Fingerprint cache keyed by absolute local file path.

    An entry is only trusted when its stored mtime equals the file's current
    mtime; otherwise lookup() reports it absent and the caller recomputes.
    Updates overwrite (last write wins). All access is serialized by a lock
    so parallel transfer workers can share one instance.

    Usage:
        cache = ChecksumCache.load(cache_path)
        fingerprint = cache.fingerprint(file_path)
        cache.save(cache_path)
    """

    def __init__(self, entries: dict[str, CacheEntry] | None = None) -> None:
        self._entries: dict[str, CacheEntry] = dict(entries or {})
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path | None) -> ChecksumCache:
        """Create a cache from the persisted store (empty if absent)."""
        if path is None:
            return cls()
        return cls(load_entries(path))

    def lookup(self, path: str | Path, current_mtime: int) -> str | None:
        """Get the cached fingerprint if it is still valid.

        Args:
            path: Absolute local file path.
            current_mtime: The file's current mtime in whole seconds.

        Returns:
            Fingerprint, or None when missing or stale.
        """
        with self._lock:
            entry = self._entries.get(str(path))
        if entry is None or not entry.is_valid_for(current_mtime):
            return None
        return entry.fingerprint

    def update(self, path: str | Path, fingerprint: str, mtime: int) -> None:
        """Store the fingerprint of a file, replacing any previous entry."""
        with self._lock:
            self._entries[str(path)] = CacheEntry(fingerprint=fingerprint, mtime=int(mtime))

    def fingerprint(self, path: Path) -> str:
        """Get a file's fingerprint, computing it when the cache is stale.

        Args:
            path: Absolute local file path.

        Returns:
            Hex SHA-256 fingerprint.
        """
        mtime = file_mtime(path)
        cached = self.lookup(path, mtime)
        if cached is not None:
            return cached

        logger.debug(f"Computing fingerprint: {path}")
        fingerprint = compute_file_hash(path)
        self.update(path, fingerprint, mtime)
        return fingerprint

    def save(self, path: Path) -> None:
        """Write the whole cache, atomically replacing the previous file.

        Args:
            path: Cache file location.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            snapshot = dict(self._entries)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as f:
                for file_path, entry in snapshot.items():
                    f.write(
                        f"{file_path}{FIELD_SEPARATOR}{entry.fingerprint}"
                        f"{FIELD_SEPARATOR}{entry.mtime}\n"
                    )
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            # Leave the previous cache untouched
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Saved {len(snapshot)} checksum cache entries to {path}")

    def entries(self) -> dict[str, CacheEntry]:
        """Get a copy of all entries."""
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return str(path) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries())
