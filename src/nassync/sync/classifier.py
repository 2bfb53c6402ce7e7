"""File classification against the remote side.

This module provides:
- FileClassifier: Walks a source folder and sorts its files into
  "needs transfer" and "already synchronized" buckets

Decision per file:
    remote missing                      -> NEW
    remote size != local size           -> SIZE_MISMATCH
    sizes equal, checksum mode off      -> IDENTICAL
    sizes equal, checksum mode on       -> IDENTICAL (local fingerprint cached)

In checksum mode no remote fingerprint is computed. Equal size is the proxy
for "possibly identical"; actual content comparison is left to rsync's own
--checksum run. With exhaustive checksum mode every file is handed to rsync,
and a size-matching file is reclassified CHECKSUM_MISMATCH by the
orchestrator only if rsync reports sending it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from nassync.core.types import Classification
from nassync.sync.ignore import IgnorePatterns
from nassync.sync.types import ClassificationReport, LocalFile

if TYPE_CHECKING:
    from nassync.core.config import SourceFolder
    from nassync.sync.cache import ChecksumCache
    from nassync.sync.remote import RemoteProbe

logger = logging.getLogger(__name__)


class FileClassifier:
    """Classifies local files relative to their remote counterparts.

    Usage:
        classifier = FileClassifier(probe, cache, use_checksum=True)
        report = classifier.classify(source)
        for file in report.to_transfer:
            ...
    """

    def __init__(
        self,
        probe: RemoteProbe,
        cache: ChecksumCache,
        use_checksum: bool = False,
        exhaustive: bool = False,
        ignore: IgnorePatterns | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            probe: Remote existence/stat queries.
            cache: Checksum cache (used in checksum mode).
            use_checksum: Fingerprint local files of equal size.
            exhaustive: With use_checksum, send every file to rsync.
            ignore: Exclude patterns (none if None).
        """
        self._probe = probe
        self._cache = cache
        self._use_checksum = use_checksum
        self._exhaustive = use_checksum and exhaustive
        self._ignore = ignore or IgnorePatterns()

    def scan(self, source: SourceFolder) -> list[LocalFile]:
        """List the files of a source folder.

        Symlinks (to files or directories) are listed as entries of their
        own and never followed; rsync -a recreates them as links. Excluded
        paths are skipped. Results are sorted by relative path.

        Args:
            source: Source folder to walk.

        Returns:
            Scanned files with their remote paths.
        """
        base_path = source.local_path
        files: list[LocalFile] = []

        for root_str, dirs, filenames in os.walk(base_path):
            root = Path(root_str)

            linked_dirs = [d for d in dirs if (root / d).is_symlink()]
            dirs[:] = sorted(
                d for d in dirs
                if d not in linked_dirs
                and not self._ignore.should_ignore(root / d, base_path)
            )

            for name in sorted([*filenames, *linked_dirs]):
                file_path = root / name
                if self._ignore.should_ignore(file_path, base_path):
                    continue

                try:
                    stat = file_path.lstat()
                except OSError as e:
                    # Vanished between listing and stat
                    logger.warning(f"Cannot stat {file_path}: {e}")
                    continue

                relative_path = str(file_path.relative_to(base_path)).replace("\\", "/")
                files.append(
                    LocalFile(
                        local_path=file_path,
                        relative_path=relative_path,
                        remote_path=source.remote_path_for(relative_path),
                        size=stat.st_size,
                        mtime=int(stat.st_mtime),
                        is_symlink=file_path.is_symlink(),
                    )
                )

        files.sort(key=lambda f: f.relative_path)
        return files

    def classify_file(self, file: LocalFile) -> Classification:
        """Classify one file.

        Args:
            file: Scanned local file.

        Returns:
            The file's classification.
        """
        if not self._probe.exists(file.remote_path):
            return Classification.NEW

        remote = self._probe.stat(file.remote_path)
        remote_size = remote.size if remote is not None else 0
        if remote_size != file.size:
            logger.debug(
                f"Size mismatch for {file.relative_path}: "
                f"local={file.size} remote={remote_size}"
            )
            return Classification.SIZE_MISMATCH

        if self._use_checksum and not file.is_symlink:
            # Local fingerprint only; content comparison is rsync's job
            try:
                self._cache.fingerprint(file.local_path)
            except OSError as e:
                logger.warning(f"Cannot fingerprint {file.local_path}: {e}")

        return Classification.IDENTICAL

    def classify(self, source: SourceFolder) -> ClassificationReport:
        """Classify every file of a source folder.

        Args:
            source: Source folder to classify.

        Returns:
            ClassificationReport with transfer and identical buckets.
        """
        report = ClassificationReport(source=source)

        for file in self.scan(source):
            classification = self.classify_file(file)
            transfer = classification.needs_transfer or self._exhaustive
            report.add(file, classification, transfer)

        logger.info(
            f"Classified {source.local_path}: {len(report.to_transfer)} to transfer, "
            f"{len(report.identical)} identical"
        )
        return report
