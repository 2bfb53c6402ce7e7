"""Core module - Shared settings, hashing, and enums."""

from nassync.core.config import ConfigurationError, SourceFolder, SyncSettings
from nassync.core.hashing import compute_file_hash, file_mtime
from nassync.core.types import Classification, ErrorKind, TransferKind

__all__ = [
    # Config
    "ConfigurationError",
    "SourceFolder",
    "SyncSettings",
    # Hashing
    "compute_file_hash",
    "file_mtime",
    # Types
    "Classification",
    "ErrorKind",
    "TransferKind",
]
