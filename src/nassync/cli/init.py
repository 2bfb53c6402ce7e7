"""Setup commands for nassync CLI.

Commands:
- init: Write the JSON config file interactively
- cache-info: Show the checksum cache location and size
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from nassync.cli.config import get_config_file, load_config, load_settings, save_config
from nassync.core.config import ConfigurationError
from nassync.sync import ChecksumCache


@click.command()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="JSON config file to write (default: ~/.nassync/config.json).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def init(config_file: Path | None, force: bool) -> None:
    """Create the nassync config file.

    Prompts for the remote host, the destination directory and the source
    folders to replicate.
    """
    config_file = config_file or get_config_file()

    if config_file.exists() and not force:
        click.echo(f"Error: {config_file} already exists. Use --force to overwrite.", err=True)
        sys.exit(1)

    nas_host = click.prompt("Remote host (user@host)")
    destination = click.prompt("Destination directory on the remote host")

    click.echo("Source folders to replicate (empty line to finish):")
    sources: list[str] = []
    while True:
        source = click.prompt(f"  Source {len(sources) + 1}", default="", show_default=False)
        if not source:
            break
        path = Path(source).expanduser()
        if not path.is_dir():
            click.echo(click.style(f"  Warning: {path} does not exist yet", fg="yellow"))
        sources.append(str(path.absolute()))

    if not sources:
        click.echo("Error: at least one source folder is required.", err=True)
        sys.exit(1)

    use_checksum = click.confirm("Verify file content with checksums?", default=False)
    max_attempts = click.prompt("Attempts per transfer", default=3, type=click.IntRange(min=1))

    config = dict(load_config(config_file)) if force else {}
    config.update(
        {
            "nas_host": nas_host,
            "destination": destination,
            "sources": sources,
            "use_checksum": use_checksum,
            "max_attempts": max_attempts,
        }
    )
    save_config(config, config_file)

    click.echo(click.style(f"\nConfiguration saved to {config_file}", fg="green"))
    click.echo("Run 'nassync sync' to start replicating.")


@click.command("cache-info")
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
    help=".env file (default: ./.env).",
)
def cache_info(config_file: Path | None, env_file: Path | None) -> None:
    """Show where the checksum cache lives and how many files it covers."""
    try:
        settings = load_settings(config_file=config_file, env_file=env_file)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if settings.cache_file is None:
        click.echo("Checksum cache disabled.")
        return

    cache = ChecksumCache.load(settings.cache_file)
    state = "present" if settings.cache_file.exists() else "not created yet"
    click.echo(f"Checksum cache: {settings.cache_file} ({state})")
    click.echo(f"Entries: {len(cache)}")
