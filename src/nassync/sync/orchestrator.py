"""Session orchestration.

This module provides:
- SessionState: Steps of a sync session
- SyncOrchestrator: Runs one session over every configured source

Flow:
    INIT -> VALIDATE_SOURCES -> (CLASSIFY -> TRANSFER)* -> PERSIST_CACHE
         -> SUMMARIZE -> DONE

Only a configuration error stops a session. Every other failure is written
to the session error log and processing continues with the next file or
source.
"""

from __future__ import annotations

import logging
import threading
from enum import IntEnum, auto
from typing import TYPE_CHECKING

from nassync.core.config import ConfigurationError
from nassync.core.types import Classification, ErrorKind, TransferKind
from nassync.sync.pool import TransferPool
from nassync.sync.retry import RetryDriver, RetryState
from nassync.sync.types import SessionSummary, TransferResult, TransferTask

if TYPE_CHECKING:
    from nassync.core.config import SourceFolder, SyncSettings
    from nassync.sync.cache import ChecksumCache
    from nassync.sync.classifier import FileClassifier
    from nassync.sync.error_log import SessionErrorLog
    from nassync.sync.transfer import TransferExecutor

logger = logging.getLogger(__name__)


class SessionState(IntEnum):
    """Step of a sync session."""

    INIT = auto()
    VALIDATE_SOURCES = auto()
    CLASSIFY = auto()
    TRANSFER = auto()
    PERSIST_CACHE = auto()
    SUMMARIZE = auto()
    DONE = auto()


class SyncOrchestrator:
    """Runs a sync session.

    The cache and error log are owned by the caller and passed in, so one
    instance of each is shared by every component of the session.

    Usage:
        orchestrator = SyncOrchestrator(
            settings, classifier, executor, cache, error_log, RetryDriver()
        )
        summary = orchestrator.run()
    """

    def __init__(
        self,
        settings: SyncSettings,
        classifier: FileClassifier,
        executor: TransferExecutor,
        cache: ChecksumCache,
        error_log: SessionErrorLog,
        retry_driver: RetryDriver | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            settings: Validated session settings.
            classifier: Per-file classifier.
            executor: Transfer executor.
            cache: Checksum cache for the session.
            error_log: Session error log.
            retry_driver: Retry driver (default uses settings.base_delay).
        """
        self._settings = settings
        self._classifier = classifier
        self._executor = executor
        self._cache = cache
        self._error_log = error_log
        self._retry = retry_driver or RetryDriver(base_delay=settings.base_delay)

        self._state = SessionState.INIT
        self._processed: list[str] = []
        self._skipped: list[str] = []
        self._classification_counts = {c: 0 for c in Classification}
        self._transferred = 0
        self._failed = 0
        self._lock = threading.Lock()  # Counters are updated from pool workers

    @property
    def state(self) -> SessionState:
        """Get the current session step."""
        return self._state

    def validate_sources(self) -> list[SourceFolder]:
        """Drop sources that do not exist locally.

        Returns:
            Sources that exist, in configured order.

        Raises:
            ConfigurationError: If no source is left.
        """
        self._state = SessionState.VALIDATE_SOURCES
        valid: list[SourceFolder] = []

        for source in self._settings.source_folders:
            if source.local_path.is_dir():
                valid.append(source)
                continue
            logger.error(f"Source folder {source.local_path} does not exist, skipping")
            self._error_log.append(str(source.local_path), ErrorKind.SOURCE_MISSING)
            self._skipped.append(str(source.local_path))

        if not valid:
            raise ConfigurationError("No valid source folder to synchronize")
        return valid

    def run(self) -> SessionSummary:
        """Run the whole session.

        Returns:
            SessionSummary of the session.

        Raises:
            ConfigurationError: If settings are invalid or no source exists.
        """
        self._settings.validate()
        logger.info(f"Starting synchronization to {self._settings.full_destination}")

        sources = self.validate_sources()

        pool: TransferPool | None = None
        if self._settings.per_file and self._settings.parallel_jobs > 1:
            pool = TransferPool(max_workers=self._settings.parallel_jobs)
            pool.start()

        try:
            for source in sources:
                logger.info(
                    f"Synchronizing {source.local_path} to "
                    f"{self._settings.nas_host}:{source.remote_prefix}"
                )
                if self._settings.per_file:
                    self.sync_source_per_file(source, pool)
                else:
                    self.sync_source_tree(source)
                self._processed.append(str(source.local_path))
        finally:
            if pool is not None:
                pool.stop()

        self.persist()
        summary = self.summarize()
        logger.info(f"Synchronization finished: {summary.status_text}")
        return summary

    def sync_source_per_file(
        self, source: SourceFolder, pool: TransferPool | None = None
    ) -> int:
        """Classify a source and push every file that needs it.

        Args:
            source: Source folder.
            pool: Worker pool for parallel transfers, None for sequential.

        Returns:
            Number of files transferred successfully.
        """
        self._state = SessionState.CLASSIFY
        report = self._classifier.classify(source)
        for classification, count in report.counts().items():
            if classification != Classification.IDENTICAL:
                self._classification_counts[classification] += count
        # Size-matching files handed over in exhaustive mode are counted after rsync
        self._classification_counts[Classification.IDENTICAL] += len(report.identical)

        self._state = SessionState.TRANSFER
        tasks = [
            TransferTask.for_file(source, file, report.classifications[file.relative_path])
            for file in report.to_transfer
        ]
        if not tasks:
            logger.info(f"Nothing to transfer for {source.local_path}")
            return 0

        jobs = [lambda task=task: self.run_task(task) for task in tasks]
        if pool is not None:
            results = pool.run(jobs)
        else:
            results = [job() for job in jobs]

        return sum(1 for ok in results if ok)

    def sync_source_tree(self, source: SourceFolder) -> bool:
        """Push a whole source folder in one rsync run (with retries)."""
        self._state = SessionState.TRANSFER
        return self.run_task(TransferTask.for_tree(source))

    def run_task(self, task: TransferTask) -> bool:
        """Execute one task under the retry driver and record its outcome.

        Every failed attempt adds a TransferFailed (file) or SyncFailed (tree)
        record; an exhausted budget adds a single Critical record.

        Returns:
            True if the task eventually succeeded.
        """

        def attempt() -> TransferResult:
            try:
                if task.kind == TransferKind.TREE:
                    return self._executor.transfer_tree(task.source)
                return self._executor.transfer_file(task.local_path, task.remote_path)
            except Exception as e:
                # Counted as a failed attempt like any nonzero rsync exit
                logger.exception(f"Transfer of {task.subject} raised")
                return TransferResult(success=False, returncode=-1, error=repr(e))

        def on_failure(state: RetryState) -> None:
            result = state.last_outcome
            detail = f"attempt {state.attempt}/{state.max_attempts}"
            if isinstance(result, TransferResult):
                detail += f", exit status {result.returncode}"
                if result.error:
                    detail += f", {result.error}"
            self._error_log.append(task.subject, task.failure_kind, detail)

        state = self._retry.run(
            attempt,
            max_attempts=self._settings.max_attempts,
            on_failure=on_failure,
            label=task.subject,
        )

        if not state.succeeded:
            self._error_log.append(
                task.subject,
                ErrorKind.CRITICAL,
                f"failed after {state.max_attempts} attempts",
            )
            self._count(failed=True)
            return False

        self._record_success(task, state.last_outcome)
        return True

    def _record_success(self, task: TransferTask, result: TransferResult) -> None:
        """Update counters and the checksum cache after a successful transfer."""
        self._count(failed=False)
        if task.kind != TransferKind.FILE:
            return

        if task.classification == Classification.IDENTICAL:
            # Exhaustive checksum run of a size-matching file: rsync decides
            changed = isinstance(result, TransferResult) and result.changed
            key = Classification.CHECKSUM_MISMATCH if changed else Classification.IDENTICAL
            with self._lock:
                self._classification_counts[key] += 1

        if self._settings.use_checksum and not (task.file and task.file.is_symlink):
            try:
                self._cache.fingerprint(task.local_path)
            except OSError as e:
                logger.warning(f"Cannot fingerprint {task.local_path}: {e}")

    def _count(self, failed: bool) -> None:
        with self._lock:
            if failed:
                self._failed += 1
            else:
                self._transferred += 1

    def persist(self) -> None:
        """Save the checksum cache and write the error log."""
        self._state = SessionState.PERSIST_CACHE
        if self._settings.cache_file is not None:
            try:
                self._cache.save(self._settings.cache_file)
            except OSError as e:
                logger.error(f"Cannot save checksum cache {self._settings.cache_file}: {e}")
        if self._settings.error_log_file is not None:
            self._error_log.write(self._settings.error_log_file)

    def summarize(self) -> SessionSummary:
        """Build the session summary."""
        self._state = SessionState.SUMMARIZE
        summary = SessionSummary(
            error_counts=self._error_log.counts(),
            classification_counts=dict(self._classification_counts),
            sources_processed=list(self._processed),
            sources_skipped=list(self._skipped),
            transferred=self._transferred,
            failed=self._failed,
            error_log_file=self._settings.error_log_file,
        )
        self._state = SessionState.DONE
        return summary
