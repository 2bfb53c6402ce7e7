"""Incremental replication of local folders to a remote host.

Architecture:
    SyncOrchestrator → FileClassifier → RetryDriver → TransferExecutor

Components:
- **ChecksumCache**: Persisted fingerprints, trusted only while mtime is unchanged
- **RemoteProbe**: Remote exists/stat/mkdir over SSH (SSHRemoteProbe)
- **FileClassifier**: Sorts files of a source into "transfer" and "identical"
- **TransferExecutor**: Pushes one file or one whole tree (RsyncExecutor)
- **RetryDriver**: Bounded attempts with linear backoff
- **TransferPool**: Optional bounded worker threads for per-file transfers
- **SyncOrchestrator**: Runs a session and produces a SessionSummary
- **SessionErrorLog**: Append-only failure records of a session
"""

from nassync.sync.cache import CacheEntry, ChecksumCache, load_entries
from nassync.sync.classifier import FileClassifier
from nassync.sync.error_log import SessionErrorLog
from nassync.sync.ignore import IgnorePatterns
from nassync.sync.orchestrator import SessionState, SyncOrchestrator
from nassync.sync.pool import PoolState, TransferPool
from nassync.sync.remote import (
    REMOTE_EXCEPTIONS,
    RemoteProbe,
    RemoteStat,
    SSHRemoteProbe,
    parse_host,
)
from nassync.sync.retry import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    InvalidTransitionError,
    RetryDriver,
    RetryState,
    RetryStatus,
    backoff_delay,
)
from nassync.sync.transfer import RsyncExecutor, TransferExecutor, build_ssh_command
from nassync.sync.types import (
    ClassificationReport,
    ConfigurationError,
    ErrorRecord,
    LocalFile,
    SessionSummary,
    TransferResult,
    TransferTask,
)

__all__ = [
    # Cache
    "CacheEntry",
    "ChecksumCache",
    "load_entries",
    # Remote
    "REMOTE_EXCEPTIONS",
    "RemoteProbe",
    "RemoteStat",
    "SSHRemoteProbe",
    "parse_host",
    # Classification
    "FileClassifier",
    "IgnorePatterns",
    # Transfer
    "RsyncExecutor",
    "TransferExecutor",
    "build_ssh_command",
    # Retry
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_ATTEMPTS",
    "InvalidTransitionError",
    "RetryDriver",
    "RetryState",
    "RetryStatus",
    "backoff_delay",
    # Orchestration
    "PoolState",
    "SessionErrorLog",
    "SessionState",
    "SyncOrchestrator",
    "TransferPool",
    # Types
    "ClassificationReport",
    "ConfigurationError",
    "ErrorRecord",
    "LocalFile",
    "SessionSummary",
    "TransferResult",
    "TransferTask",
]
