"""Command-line interface for nassync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- init: Create the config file
- sync: Push configured source folders to the remote host
- cache-info: Show the checksum cache location and size
"""

from __future__ import annotations

import click

from nassync.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    load_settings,
    save_config,
)
from nassync.cli.init import cache_info, init
from nassync.cli.sync import sync


@click.group()
@click.version_option(package_name="nassync")
def cli() -> None:
    """nassync - Incremental, resumable replication of folders to a NAS."""


cli.add_command(init)
cli.add_command(sync)
cli.add_command(cache_info)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "load_config",
    "load_settings",
    "save_config",
]
