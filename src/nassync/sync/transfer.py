"""File transfers through rsync.

This module provides:
- TransferExecutor: Interface for whole-tree and single-file transfers
- RsyncExecutor: TransferExecutor invoking rsync over ssh
- build_ssh_command: ssh transport line passed to rsync -e
- parse_itemized: Extract --itemize-changes lines from rsync output

The rsync exit status is the only success signal. One invocation either
succeeds or fails as a whole; nothing finer-grained is reported.
"""

from __future__ import annotations

import logging
import re
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from nassync.core.config import (
    DEFAULT_SSH_CONNECT_TIMEOUT,
    DEFAULT_SSH_KEEPALIVE_COUNT,
    DEFAULT_SSH_KEEPALIVE_INTERVAL,
)
from nassync.sync.remote import parse_host
from nassync.sync.types import TransferResult

if TYPE_CHECKING:
    from nassync.core.config import SourceFolder, SyncSettings
    from nassync.sync.ignore import IgnorePatterns
    from nassync.sync.remote import RemoteProbe

logger = logging.getLogger(__name__)

RSYNC_BINARY = "rsync"

# -a archive, -v verbose, -S sparse files, --protect-args keeps remote paths unsplit
RSYNC_BASE_OPTS = [
    "-a",
    "-v",
    "-S",
    "--protect-args",
    "--partial",
    "--human-readable",
    "--itemize-changes",
    "--stats",
]

# Itemized change line: YXcstpoguax followed by the path
ITEMIZED_RE = re.compile(r"^([<>ch.*][fdLDS][.+?a-zA-Z]{9,10}|\*deleting)\s+(.+)$")

# Runner signature matches subprocess.run
Runner = Callable[..., Any]


def build_ssh_command(
    nas_host: str,
    connect_timeout: int,
    keepalive_interval: int,
    keepalive_count: int,
) -> str:
    """Build the ssh command line rsync uses as its transport.

    Args:
        nas_host: "user@host[:port]".
        connect_timeout: ConnectTimeout in seconds.
        keepalive_interval: ServerAliveInterval in seconds.
        keepalive_count: ServerAliveCountMax.

    Returns:
        Command string for rsync -e.
    """
    parts = [
        "ssh",
        "-o", f"ServerAliveInterval={keepalive_interval}",
        "-o", f"ServerAliveCountMax={keepalive_count}",
        "-o", f"ConnectTimeout={connect_timeout}",
    ]
    port = parse_host(nas_host).port
    if port != 22:
        parts += ["-p", str(port)]
    return " ".join(parts)


def parse_itemized(output: str) -> list[str]:
    """Get the itemized change lines from rsync output."""
    return [line for line in output.splitlines() if ITEMIZED_RE.match(line.strip())]


class TransferExecutor(ABC):
    """Moves files to the remote side."""

    @abstractmethod
    def transfer_tree(self, source: SourceFolder) -> TransferResult:
        """Push a whole source folder in one invocation."""
        ...

    @abstractmethod
    def transfer_file(self, local_path: Path, remote_path: str) -> TransferResult:
        """Push exactly one file, creating its remote parent first."""
        ...


class RsyncExecutor(TransferExecutor):
    """TransferExecutor running rsync over ssh.

    Usage:
        executor = RsyncExecutor.from_settings(settings, probe)
        result = executor.transfer_file(Path("/data/a.txt"), "/backup/data/a.txt")
        if not result:
            ...
    """

    def __init__(
        self,
        nas_host: str,
        probe: RemoteProbe,
        log_file: Path | None = None,
        checksum: bool = False,
        compress: bool = False,
        ssh_command: str | None = None,
        ignore: IgnorePatterns | None = None,
        extra_opts: Sequence[str] = (),
        runner: Runner = subprocess.run,
    ) -> None:
        """Initialize the executor.

        Args:
            nas_host: "user@host[:port]" of the remote side.
            probe: Used to create remote parent directories.
            log_file: Passed to rsync --log-file.
            checksum: Compare content by checksum instead of size/mtime.
            compress: Compress data in transit.
            ssh_command: Transport for rsync -e (default: plain ssh).
            ignore: Exclude patterns for whole-tree runs.
            extra_opts: Additional rsync arguments.
            runner: subprocess.run compatible callable.
        """
        host = parse_host(nas_host)
        self._host = f"{host.username}@{host.hostname}" if host.username else host.hostname
        self._probe = probe
        self._log_file = log_file
        self._checksum = checksum
        self._compress = compress
        self._ssh_command = ssh_command or build_ssh_command(
            nas_host,
            DEFAULT_SSH_CONNECT_TIMEOUT,
            DEFAULT_SSH_KEEPALIVE_INTERVAL,
            DEFAULT_SSH_KEEPALIVE_COUNT,
        )
        self._ignore = ignore
        self._extra_opts = list(extra_opts)
        self._runner = runner

    @classmethod
    def from_settings(
        cls,
        settings: SyncSettings,
        probe: RemoteProbe,
        ignore: IgnorePatterns | None = None,
        runner: Runner = subprocess.run,
    ) -> RsyncExecutor:
        """Create an executor configured from session settings."""
        return cls(
            nas_host=settings.nas_host,
            probe=probe,
            log_file=settings.log_file,
            checksum=settings.use_checksum,
            compress=settings.compress,
            ssh_command=build_ssh_command(
                settings.nas_host,
                settings.ssh_connect_timeout,
                settings.ssh_keepalive_interval,
                settings.ssh_keepalive_count,
            ),
            ignore=ignore,
            extra_opts=settings.rsync_extra_opts,
            runner=runner,
        )

    def remote_spec(self, remote_path: str) -> str:
        """Get the rsync host:path argument for a remote path."""
        return f"{self._host}:{remote_path}"

    def build_command(self, sources: Sequence[str], destination: str, tree: bool) -> list[str]:
        """Build a full rsync command line.

        Args:
            sources: Local paths to send.
            destination: Remote path (without host).
            tree: Add exclude patterns (whole-tree runs only).

        Returns:
            Argument list for the runner.
        """
        cmd = [RSYNC_BINARY, *RSYNC_BASE_OPTS]
        if self._checksum:
            cmd.append("--checksum")
        if self._compress:
            cmd.append("--compress")
        if self._log_file is not None:
            cmd.append(f"--log-file={self._log_file}")
        cmd += ["-e", self._ssh_command]
        if tree and self._ignore is not None:
            cmd += self._ignore.rsync_args()
        cmd += self._extra_opts
        cmd += list(sources)
        cmd.append(self.remote_spec(destination))
        return cmd

    def _run(self, cmd: list[str]) -> TransferResult:
        """Run rsync and turn its exit status into a TransferResult."""
        logger.debug(f"Executing: {' '.join(cmd)}")
        try:
            proc = self._runner(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.error(f"Could not start rsync: {e}")
            return TransferResult(success=False, returncode=-1, error=str(e))

        stdout = proc.stdout or ""
        stderr = proc.stderr or ""
        if stdout:
            logger.debug(stdout.rstrip())

        if proc.returncode != 0:
            error = stderr.strip().splitlines()[-1] if stderr.strip() else None
            logger.warning(f"rsync exited with status {proc.returncode}: {error or ''}")
            return TransferResult(
                success=False,
                returncode=proc.returncode,
                itemized=parse_itemized(stdout),
                error=error,
            )

        return TransferResult(
            success=True,
            returncode=0,
            itemized=parse_itemized(stdout),
        )

    def transfer_tree(self, source: SourceFolder) -> TransferResult:
        # Trailing slashes: sync the folder contents into remote_prefix
        self._probe.mkdir_p(source.remote_prefix)
        cmd = self.build_command(
            [f"{source.local_path}/"], f"{source.remote_prefix}/", tree=True
        )
        return self._run(cmd)

    def transfer_file(self, local_path: Path, remote_path: str) -> TransferResult:
        parent = remote_path.rsplit("/", 1)[0] if "/" in remote_path else "."
        self._probe.mkdir_p(parent or "/")
        cmd = self.build_command([str(local_path)], remote_path, tree=False)
        return self._run(cmd)
