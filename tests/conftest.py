"""Shared pytest fixtures for nassync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from nassync.core.config import SyncSettings
from nassync.sync.cache import ChecksumCache
from nassync.sync.error_log import SessionErrorLog
from nassync.sync.retry import RetryDriver
from tests.fakes import FakeExecutor, FakeRemote


@pytest.fixture
def remote() -> FakeRemote:
    """Empty in-memory remote side."""
    return FakeRemote()


@pytest.fixture
def executor(remote: FakeRemote) -> FakeExecutor:
    """Executor writing into the remote fixture."""
    return FakeExecutor(remote)


@pytest.fixture
def cache() -> ChecksumCache:
    return ChecksumCache()


@pytest.fixture
def error_log() -> SessionErrorLog:
    return SessionErrorLog()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the retry driver."""
    return []


@pytest.fixture
def retry_driver(sleeps: list[float]) -> RetryDriver:
    """Retry driver recording its waits instead of sleeping."""
    return RetryDriver(base_delay=30, sleep=sleeps.append)


@pytest.fixture
def settings(tmp_path: Path) -> SyncSettings:
    """Settings with one existing source folder under tmp_path."""
    source = tmp_path / "photos"
    source.mkdir()
    return SyncSettings(
        nas_host="admin@nas.local",
        destination="/volume1/backup",
        sources=[source],
        cache_file=tmp_path / "state" / "checksums.cache",
        log_file=tmp_path / "logs" / "sync.log",
    )
