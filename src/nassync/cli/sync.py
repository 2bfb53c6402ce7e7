"""Sync command for nassync CLI.

Commands:
- sync: Push every configured source folder to the remote host
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from nassync.cli.config import load_settings
from nassync.core.config import ConfigurationError, SyncSettings
from nassync.core.types import Classification, ErrorKind
from nassync.sync import (
    ChecksumCache,
    FileClassifier,
    IgnorePatterns,
    RetryDriver,
    RsyncExecutor,
    SessionErrorLog,
    SessionSummary,
    SSHRemoteProbe,
    SyncOrchestrator,
)

CONSOLE_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


@contextmanager
def session_logging(log_file: Path, verbose: bool) -> Iterator[None]:
    """Route nassync logs to the console and the session log file.

    Handlers installed on the "nassync" logger are removed on exit.
    """
    nassync_logger = logging.getLogger("nassync")
    previous_level = nassync_logger.level
    previous_propagate = nassync_logger.propagate

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handlers: list[logging.Handler] = [console]

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            log_file, encoding="utf-8", errors="backslashreplace"
        )
    except OSError as e:
        click.echo(f"Warning: cannot write session log {log_file}: {e}", err=True)
    else:
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)

    for handler in handlers:
        nassync_logger.addHandler(handler)
    nassync_logger.setLevel(logging.DEBUG)
    nassync_logger.propagate = False

    try:
        yield
    finally:
        for handler in handlers:
            nassync_logger.removeHandler(handler)
            handler.close()
        nassync_logger.setLevel(previous_level)
        nassync_logger.propagate = previous_propagate


def run_session(settings: SyncSettings) -> SessionSummary:
    """Wire the session components together and run them.

    Args:
        settings: Validated settings.

    Returns:
        SessionSummary of the session.
    """
    cache = ChecksumCache.load(settings.cache_file)
    error_log = SessionErrorLog()
    ignore = IgnorePatterns(settings.exclude)

    with SSHRemoteProbe(
        settings.nas_host,
        connect_timeout=settings.ssh_connect_timeout,
        keepalive_interval=settings.ssh_keepalive_interval,
    ) as probe:
        classifier = FileClassifier(
            probe,
            cache,
            use_checksum=settings.use_checksum,
            exhaustive=settings.exhaustive_checksum,
            ignore=ignore,
        )
        executor = RsyncExecutor.from_settings(settings, probe, ignore=ignore)
        orchestrator = SyncOrchestrator(
            settings,
            classifier,
            executor,
            cache,
            error_log,
            RetryDriver(base_delay=settings.base_delay),
        )
        return orchestrator.run()


def display_summary(summary: SessionSummary, settings: SyncSettings) -> None:
    """Display session results."""
    counts = summary.classification_counts
    click.echo(
        f"\nSynchronization {summary.status_text}: "
        f"{summary.transferred} transferred, "
        f"{counts.get(Classification.IDENTICAL, 0)} up to date, "
        f"{summary.failed} failed"
    )

    if counts.get(Classification.NEW) or counts.get(Classification.SIZE_MISMATCH):
        click.echo(
            f"  {counts.get(Classification.NEW, 0)} new, "
            f"{counts.get(Classification.SIZE_MISMATCH, 0)} changed size, "
            f"{counts.get(Classification.CHECKSUM_MISMATCH, 0)} changed content"
        )

    for source in summary.sources_skipped:
        click.echo(click.style(f"  ! Skipped missing source: {source}", fg="yellow"))

    if not summary.clean:
        click.echo(click.style("\nErrors:", fg="red"))
        for kind in ErrorKind:
            count = summary.error_counts.get(kind, 0)
            if count:
                click.echo(f"  {kind.value}: {count}")
        click.echo(f"Error log: {summary.error_log_file}")

    click.echo(f"Log available in: {settings.log_file}")


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON config file (default: ~/.nassync/config.json).",
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=".env file with NAS_HOST, DESTINATION, SOURCE_1... (default: ./.env).",
)
@click.option(
    "--checksum/--no-checksum",
    default=None,
    help="Compare file content by checksum instead of size.",
)
@click.option("--exhaustive", is_flag=True, help="In checksum mode, let rsync check every file.")
@click.option("--tree", is_flag=True, help="Hand each source to rsync as a whole tree.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Parallel transfers.")
@click.option(
    "--max-attempts", type=click.IntRange(min=1), default=None, help="Attempts per transfer."
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output.")
def sync(
    config_file: Path | None,
    env_file: Path | None,
    checksum: bool | None,
    exhaustive: bool,
    tree: bool,
    jobs: int | None,
    max_attempts: int | None,
    verbose: bool,
) -> None:
    """Push every configured source folder to the remote host.

    Files already present remotely with the same size are skipped. Failed
    transfers are retried with a growing delay. The session ends with a
    summary; individual failures do not stop the session.
    """
    try:
        settings = load_settings(config_file=config_file, env_file=env_file)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if checksum is not None:
        settings.use_checksum = checksum
    if exhaustive:
        settings.exhaustive_checksum = True
    if tree:
        settings.per_file = False
    if jobs is not None:
        settings.parallel_jobs = jobs
    if max_attempts is not None:
        settings.max_attempts = max_attempts

    try:
        settings.validate()
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Synchronizing to {settings.full_destination}")
    for source in settings.sources:
        click.echo(f"  {source}")

    with session_logging(settings.log_file, verbose):
        logger = logging.getLogger("nassync.cli")
        logger.info("Synchronization started")
        try:
            summary = run_session(settings)
        except ConfigurationError as e:
            logger.error(f"Synchronization aborted: {e}")
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        logger.info(f"Synchronization finished ({summary.status_text})")

    display_summary(summary, settings)
