"""Bounded retries with linear backoff.

This module provides:
- backoff_delay: Wait after a failed attempt (attempt * base_delay)
- RetryStatus, RetryState: Per-task retry state machine
- RetryDriver: Runs a task until it succeeds or its attempt budget is spent

States:
    PENDING -> ATTEMPTING -> SUCCEEDED
                          -> WAITING -> ATTEMPTING
                          -> EXHAUSTED

All state transitions are validated. The sleep function is injected so the
driver can be exercised without real delays.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Any

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 30.0  # seconds


def backoff_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
    """Get the wait after failed attempt number `attempt` (1-indexed).

    The delay grows linearly: 1 * base, 2 * base, 3 * base, ...
    """
    return attempt * base_delay


class RetryStatus(IntEnum):
    """Status of a retried task."""

    PENDING = auto()
    ATTEMPTING = auto()
    WAITING = auto()
    SUCCEEDED = auto()
    EXHAUSTED = auto()


# Valid state transitions
VALID_TRANSITIONS: dict[RetryStatus, set[RetryStatus]] = {
    RetryStatus.PENDING: {RetryStatus.ATTEMPTING},
    RetryStatus.ATTEMPTING: {
        RetryStatus.SUCCEEDED,
        RetryStatus.WAITING,
        RetryStatus.EXHAUSTED,
    },
    RetryStatus.WAITING: {RetryStatus.ATTEMPTING},
    RetryStatus.SUCCEEDED: set(),  # Terminal
    RetryStatus.EXHAUSTED: set(),  # Terminal
}


class InvalidTransitionError(Exception):
    """Raised when attempting invalid state transition."""


@dataclass
class RetryState:
    """Retry bookkeeping for one task.

    Attributes:
        max_attempts: Attempt budget.
        attempt: Current attempt number (1-indexed, 0 before the first).
        status: Current status.
        waits: Delays computed after each failed, non-final attempt.
        last_outcome: Value returned by the most recent attempt.
    """

    max_attempts: int
    attempt: int = 0
    status: RetryStatus = RetryStatus.PENDING
    waits: list[float] = field(default_factory=list)
    last_outcome: Any = None

    def transition_to(self, new_status: RetryStatus) -> None:
        """Transition to a new status with validation."""
        if new_status not in VALID_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.name} to {new_status.name}"
            )
        self.status = new_status

    def begin_attempt(self) -> None:
        """Start the next attempt."""
        self.transition_to(RetryStatus.ATTEMPTING)
        self.attempt += 1

    def record_outcome(self, outcome: Any, base_delay: float) -> float | None:
        """Record an attempt's outcome.

        Args:
            outcome: Value returned by the task (truthy means success).
            base_delay: Backoff unit.

        Returns:
            Seconds to wait before the next attempt, or None when terminal.
        """
        self.last_outcome = outcome
        if outcome:
            self.transition_to(RetryStatus.SUCCEEDED)
            return None
        if self.attempt >= self.max_attempts:
            self.transition_to(RetryStatus.EXHAUSTED)
            return None
        self.transition_to(RetryStatus.WAITING)
        delay = backoff_delay(self.attempt, base_delay)
        self.waits.append(delay)
        return delay

    @property
    def succeeded(self) -> bool:
        """Check if the task succeeded."""
        return self.status == RetryStatus.SUCCEEDED

    @property
    def is_terminal(self) -> bool:
        """Check if retrying is over."""
        return self.status in (RetryStatus.SUCCEEDED, RetryStatus.EXHAUSTED)


class RetryDriver:
    """Runs tasks with a bounded number of attempts.

    Each task gets its own budget; nothing is shared between tasks. There is
    no jitter. Waiting blocks only the calling thread.

    Usage:
        driver = RetryDriver(base_delay=30)
        ok = driver.execute(lambda: executor.transfer_file(src, dst), max_attempts=3)
        if not ok:
            error_log.append(str(src), ErrorKind.CRITICAL)
    """

    def __init__(
        self,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the driver.

        Args:
            base_delay: Backoff unit in seconds.
            sleep: Blocking wait function.
        """
        self._base_delay = base_delay
        self._sleep = sleep

    @property
    def base_delay(self) -> float:
        """Get the backoff unit in seconds."""
        return self._base_delay

    def run(
        self,
        task: Callable[[], Any],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_failure: Callable[[RetryState], None] | None = None,
        label: str = "task",
    ) -> RetryState:
        """Run a task until it succeeds or the budget is spent.

        Args:
            task: Callable returning a truthy value on success.
            max_attempts: Attempt budget (at least 1).
            on_failure: Called after every failed attempt.
            label: Name used in log messages.

        Returns:
            The final RetryState (SUCCEEDED or EXHAUSTED).
        """
        state = RetryState(max_attempts=max(1, max_attempts))

        while not state.is_terminal:
            state.begin_attempt()
            logger.info(f"Attempt {state.attempt}/{state.max_attempts} for {label}")
            outcome = task()
            delay = state.record_outcome(outcome, self._base_delay)

            if state.succeeded:
                if state.attempt > 1:
                    logger.info(f"{label} succeeded on attempt {state.attempt}")
                break

            logger.warning(
                f"Attempt {state.attempt}/{state.max_attempts} failed for {label}"
            )
            if on_failure:
                on_failure(state)

            if delay is not None:
                logger.info(f"Waiting {delay:.0f}s before next attempt...")
                self._sleep(delay)

        if not state.succeeded:
            logger.error(f"All {state.max_attempts} attempts failed for {label}")
        return state

    def execute(
        self,
        task: Callable[[], Any],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        on_failure: Callable[[RetryState], None] | None = None,
        label: str = "task",
    ) -> bool:
        """Run a task with retries.

        Returns:
            True if an attempt succeeded, False once all attempts failed.
        """
        return self.run(task, max_attempts, on_failure, label).succeeded
