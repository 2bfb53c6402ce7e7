"""Remote file queries over SSH.

This module provides:
- RemoteStat: Size and mtime of a remote file
- RemoteProbe: Interface used by the classifier and the transfer executor
- SSHRemoteProbe: RemoteProbe over a paramiko SSH session
- parse_host: Split "user@host:port" into its parts

Failures never abort a session: a failed existence check means "not present",
a failed stat means "unknown size" and a failed mkdir is only logged (the
following transfer fails on its own if the directory is really missing).
"""

from __future__ import annotations

import logging
import shlex
import socket
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType

import paramiko

from nassync.core.config import (
    DEFAULT_SSH_CONNECT_TIMEOUT,
    DEFAULT_SSH_KEEPALIVE_INTERVAL,
)

logger = logging.getLogger(__name__)

# Errors from the remote channel that are treated as "no answer"
REMOTE_EXCEPTIONS: tuple[type[Exception], ...] = (
    paramiko.SSHException,
    socket.timeout,
    TimeoutError,
    OSError,
    UnicodeError,
)

DEFAULT_COMMAND_TIMEOUT = 60.0  # seconds


@dataclass(frozen=True)
class RemoteStat:
    """Size and modification time of a remote file."""

    size: int
    mtime: int


@dataclass(frozen=True)
class HostSpec:
    """Connection target parsed from NAS_HOST."""

    hostname: str
    username: str | None = None
    port: int = 22


def parse_host(nas_host: str) -> HostSpec:
    """Parse "user@host", "host:port" or "user@host:port".

    Args:
        nas_host: Host string as configured.

    Returns:
        HostSpec with defaults filled in.
    """
    username: str | None = None
    host = nas_host.strip()
    if "@" in host:
        username, host = host.rsplit("@", 1)
    port = 22
    if host.count(":") == 1:
        host, port_str = host.split(":")
        if port_str.isdigit():
            port = int(port_str)
    return HostSpec(hostname=host, username=username or None, port=port)


class RemoteProbe(ABC):
    """Queries about the remote side of a replication."""

    @abstractmethod
    def exists(self, remote_path: str) -> bool:
        """Check whether a remote path exists (False on any failure)."""
        ...

    @abstractmethod
    def stat(self, remote_path: str) -> RemoteStat | None:
        """Get size and mtime of a remote file (None on any failure)."""
        ...

    @abstractmethod
    def mkdir_p(self, remote_dir: str) -> bool:
        """Create a remote directory and its parents.

        Idempotent. Returns False on failure, never raises.
        """
        ...

    def close(self) -> None:
        """Release the remote channel."""

    def __enter__(self) -> RemoteProbe:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class SSHRemoteProbe(RemoteProbe):
    """RemoteProbe running shell commands over one SSH connection.

    Authentication is key-based (agent or default key files). The connection
    is opened lazily and reopened when the transport has died. A keepalive is
    sent periodically so idle NAS connections are not dropped.

    Usage:
        with SSHRemoteProbe("admin@nas.local") as probe:
            if not probe.exists("/volume1/backup/photos/a.jpg"):
                ...
    """

    def __init__(
        self,
        nas_host: str,
        connect_timeout: float = DEFAULT_SSH_CONNECT_TIMEOUT,
        keepalive_interval: int = DEFAULT_SSH_KEEPALIVE_INTERVAL,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        key_filename: str | None = None,
    ) -> None:
        """Initialize the probe.

        Args:
            nas_host: "user@host[:port]" of the remote side.
            connect_timeout: TCP/SSH connect timeout in seconds.
            keepalive_interval: Seconds between transport keepalives.
            command_timeout: Timeout for a single remote command.
            key_filename: Explicit private key (defaults to agent/~/.ssh keys).
        """
        self._host = parse_host(nas_host)
        self._connect_timeout = connect_timeout
        self._keepalive_interval = keepalive_interval
        self._command_timeout = command_timeout
        self._key_filename = key_filename
        self._client: paramiko.SSHClient | None = None
        self._lock = threading.Lock()

    def _connect(self) -> paramiko.SSHClient:
        """Open the SSH connection if needed and return the client."""
        if self._client is not None:
            transport = self._client.get_transport()
            if transport is not None and transport.is_active():
                return self._client
            self._client.close()
            self._client = None

        logger.debug(
            f"Connecting to {self._host.hostname}:{self._host.port} "
            f"as {self._host.username or '<default>'}"
        )
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(
            hostname=self._host.hostname,
            port=self._host.port,
            username=self._host.username,
            key_filename=self._key_filename,
            timeout=self._connect_timeout,
            banner_timeout=self._connect_timeout,
            auth_timeout=self._connect_timeout,
        )
        transport = client.get_transport()
        if transport is not None:
            transport.set_keepalive(self._keepalive_interval)
        self._client = client
        return client

    def run(self, command: str) -> tuple[int, str, str]:
        """Run a remote command.

        Args:
            command: Shell command line (arguments already quoted).

        Returns:
            (exit_status, stdout, stderr) tuple.

        Raises:
            paramiko.SSHException, OSError: On connection failures.
        """
        with self._lock:
            client = self._connect()
            # Undecodable local names go out as their original bytes
            raw = command.encode("utf-8", errors="surrogateescape")
            _, stdout, stderr = client.exec_command(raw, timeout=self._command_timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            status = stdout.channel.recv_exit_status()
        return status, out, err

    def exists(self, remote_path: str) -> bool:
        try:
            quoted = shlex.quote(remote_path)
            status, _, _ = self.run(f"test -e {quoted} || test -L {quoted}")
        except REMOTE_EXCEPTIONS as e:
            logger.warning(f"Remote existence check failed for {remote_path}: {e}")
            return False
        return status == 0

    def stat(self, remote_path: str) -> RemoteStat | None:
        try:
            status, out, err = self.run(f"stat -c '%s %Y' {shlex.quote(remote_path)}")
        except REMOTE_EXCEPTIONS as e:
            logger.warning(f"Remote stat failed for {remote_path}: {e}")
            return None
        if status != 0:
            logger.debug(f"Remote stat of {remote_path} exited {status}: {err.strip()}")
            return None
        return parse_stat_output(out)

    def mkdir_p(self, remote_dir: str) -> bool:
        try:
            status, _, err = self.run(f"mkdir -p {shlex.quote(remote_dir)}")
        except REMOTE_EXCEPTIONS as e:
            logger.warning(f"Remote mkdir failed for {remote_dir}: {e}")
            return False
        if status != 0:
            logger.warning(f"Remote mkdir of {remote_dir} exited {status}: {err.strip()}")
            return False
        return True

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None


def parse_stat_output(output: str) -> RemoteStat | None:
    """Parse the output of `stat -c '%s %Y'`.

    Returns:
        RemoteStat, or None if the output is not two integers.
    """
    parts = output.split()
    if len(parts) != 2:
        return None
    try:
        return RemoteStat(size=int(parts[0]), mtime=int(parts[1]))
    except ValueError:
        return None
