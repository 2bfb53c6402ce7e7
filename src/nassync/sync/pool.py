"""Bounded worker pool for parallel transfers.

This module provides:
- PoolState: Lifecycle of the pool
- PoolJob: A queued callable and its result slot
- TransferPool: Fixed-size set of worker threads fed from a queue
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

logger = logging.getLogger(__name__)


class PoolState(Enum):
    """State of the worker pool."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


@dataclass
class PoolJob:
    """A job executed by the pool.

    Attributes:
        index: Submission order.
        func: Callable to run.
        result: Return value once done (False if the job raised).
        done: Set when the job has finished.
    """

    index: int
    func: Callable[[], Any]
    result: Any = None
    done: threading.Event = field(default_factory=threading.Event)


class TransferPool:
    """Pool of worker threads running transfer jobs.

    Each job runs entirely on one worker, so a retry backoff inside a job
    blocks only that worker.

    Usage:
        pool = TransferPool(max_workers=4)
        pool.start()
        results = pool.run([job_a, job_b, job_c])
        pool.stop()
    """

    def __init__(self, max_workers: int = 1) -> None:
        """Initialize the pool.

        Args:
            max_workers: Number of worker threads (at least 1).
        """
        self._max_workers = max(1, max_workers)
        self._pool_state = PoolState.STOPPED
        self._lock = threading.Lock()
        self._task_queue: queue.Queue[PoolJob | None] = queue.Queue()
        self._workers: list[threading.Thread] = []
        self._completed_count = 0
        self._error_count = 0

    @property
    def state(self) -> PoolState:
        """Get current pool state."""
        return self._pool_state

    @property
    def max_workers(self) -> int:
        """Get the number of worker threads."""
        return self._max_workers

    @property
    def completed_count(self) -> int:
        """Get number of finished jobs."""
        with self._lock:
            return self._completed_count

    @property
    def error_count(self) -> int:
        """Get number of jobs that raised."""
        with self._lock:
            return self._error_count

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            if self._pool_state != PoolState.STOPPED:
                logger.warning("Transfer pool already running")
                return

            self._pool_state = PoolState.RUNNING
            for i in range(self._max_workers):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"TransferPool-{i}",
                    daemon=True,
                )
                thread.start()
                self._workers.append(thread)

            logger.info(f"Transfer pool started with {self._max_workers} workers")

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the worker threads.

        Args:
            timeout: Maximum time to wait for workers to finish.
        """
        with self._lock:
            if self._pool_state == PoolState.STOPPED:
                return
            self._pool_state = PoolState.STOPPING

            # Poison pills
            for _ in self._workers:
                self._task_queue.put(None)

        for worker in self._workers:
            worker.join(timeout=timeout / len(self._workers))

        with self._lock:
            self._pool_state = PoolState.STOPPED
            self._workers.clear()
            logger.info("Transfer pool stopped")

    def submit(self, index: int, func: Callable[[], Any]) -> PoolJob:
        """Queue a job.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if self._pool_state != PoolState.RUNNING:
            raise RuntimeError("Cannot submit job: pool not running")
        job = PoolJob(index=index, func=func)
        self._task_queue.put(job)
        return job

    def run(self, funcs: Sequence[Callable[[], Any]]) -> list[Any]:
        """Run jobs and wait for all of them.

        Args:
            funcs: Callables to run.

        Returns:
            Results in submission order.
        """
        jobs = [self.submit(i, func) for i, func in enumerate(funcs)]
        for job in jobs:
            job.done.wait()
        return [job.result for job in jobs]

    def _worker_loop(self) -> None:
        """Main loop for worker threads."""
        while True:
            job = self._task_queue.get()
            if job is None:
                # Poison pill - stop worker
                break
            self._process_job(job)

    def _process_job(self, job: PoolJob) -> None:
        """Run one job, recording its result."""
        try:
            job.result = job.func()
        except Exception:
            logger.exception(f"Transfer job {job.index} failed with an exception")
            job.result = False
            with self._lock:
                self._error_count += 1
        finally:
            with self._lock:
                self._completed_count += 1
            job.done.set()
