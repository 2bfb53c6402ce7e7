"""Session configuration for nassync.

This module defines the settings a sync session runs with. Settings are
built by the CLI from environment variables, a .env file and the JSON config
file (see nassync.cli.config); the sync engine only ever sees a validated
SyncSettings instance.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_LOG_FILE = Path("/tmp/sync_nas.log")
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 30.0  # seconds
DEFAULT_SSH_CONNECT_TIMEOUT = 30  # seconds
DEFAULT_SSH_KEEPALIVE_INTERVAL = 60  # seconds
DEFAULT_SSH_KEEPALIVE_COUNT = 3


class ConfigurationError(Exception):
    """Missing or invalid settings. Fatal for the session."""


@dataclass(frozen=True)
class SourceFolder:
    """A local directory paired with the remote prefix it is replicated to.

    Attributes:
        local_path: Absolute local directory path.
        remote_prefix: Remote directory receiving the tree contents.
    """

    local_path: Path
    remote_prefix: str

    @classmethod
    def for_destination(cls, local_path: str | Path, destination: str) -> SourceFolder:
        """Place a source under destination, keeping its directory name.

        This matches where `rsync SRC HOST:DEST` puts a directory given
        without a trailing slash.
        """
        path = Path(local_path).expanduser().absolute()
        return cls(
            local_path=path,
            remote_prefix=posixpath.join(destination, path.name),
        )

    def remote_path_for(self, relative_path: str) -> str:
        """Remote path of a file given its path relative to local_path."""
        return posixpath.join(self.remote_prefix, relative_path)


@dataclass
class SyncSettings:
    """Settings for one sync session.

    Attributes:
        nas_host: Remote host, optionally as user@host or user@host:port.
        destination: Remote directory receiving every source.
        sources: Local source directories, in processing order.
        use_checksum: Fingerprint files and let rsync compare content.
        exhaustive_checksum: In checksum mode, hand every file to rsync.
        per_file: Classify files ourselves instead of whole-tree rsync runs.
        max_attempts: Transfer attempts per task before giving up.
        base_delay: Backoff unit in seconds (attempt N failing waits N * base).
        parallel_jobs: Worker threads for per-file transfers.
        compress: Ask rsync to compress data in transit.
        cache_file: Checksum cache location, None to disable persistence.
        log_file: Session log, also handed to rsync --log-file.
        error_log_file: Error log location (defaults next to log_file).
        exclude: Glob patterns of files to leave out.
        rsync_extra_opts: Extra arguments appended to every rsync call.
    """

    nas_host: str
    destination: str
    sources: list[Path] = field(default_factory=list)
    use_checksum: bool = False
    exhaustive_checksum: bool = False
    per_file: bool = True
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    parallel_jobs: int = 1
    compress: bool = False
    cache_file: Path | None = None
    log_file: Path = DEFAULT_LOG_FILE
    error_log_file: Path | None = None
    exclude: list[str] = field(default_factory=list)
    rsync_extra_opts: list[str] = field(default_factory=list)
    ssh_connect_timeout: int = DEFAULT_SSH_CONNECT_TIMEOUT
    ssh_keepalive_interval: int = DEFAULT_SSH_KEEPALIVE_INTERVAL
    ssh_keepalive_count: int = DEFAULT_SSH_KEEPALIVE_COUNT

    def __post_init__(self) -> None:
        """Normalize paths and the destination."""
        self.nas_host = self.nas_host.strip()
        self.destination = self.destination.strip()
        if len(self.destination) > 1:
            self.destination = self.destination.rstrip("/")
        self.sources = [Path(s).expanduser() for s in self.sources]
        self.log_file = Path(self.log_file).expanduser()
        if self.cache_file is not None:
            self.cache_file = Path(self.cache_file).expanduser()
        if self.error_log_file is None:
            self.error_log_file = self.log_file.with_name(
                f"{self.log_file.stem}_errors{self.log_file.suffix or '.log'}"
            )
        else:
            self.error_log_file = Path(self.error_log_file).expanduser()

    @property
    def full_destination(self) -> str:
        """Get the rsync-style host:path destination."""
        return f"{self.nas_host}:{self.destination}"

    @property
    def source_folders(self) -> list[SourceFolder]:
        """Configured sources paired with their remote prefixes."""
        return [SourceFolder.for_destination(s, self.destination) for s in self.sources]

    def validate(self) -> None:
        """Check required settings.

        Raises:
            ConfigurationError: If a required value is missing or out of range.
        """
        if not self.nas_host or not self.destination:
            raise ConfigurationError("Missing required settings: NAS_HOST, DESTINATION")
        if not self.sources:
            raise ConfigurationError(
                "No source folder configured (use SOURCE_1, SOURCE_2, etc.)"
            )
        if self.max_attempts < 1:
            raise ConfigurationError(f"MAX_ATTEMPTS must be >= 1, got {self.max_attempts}")
        if self.parallel_jobs < 1:
            raise ConfigurationError(
                f"PARALLEL_JOBS must be >= 1, got {self.parallel_jobs}"
            )
        if self.base_delay < 0:
            raise ConfigurationError(f"BASE_DELAY must be >= 0, got {self.base_delay}")
