"""Command-line interface for unreadsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Save server URLs and token
- count: Fetch the unread count once
- health: Check that the server is reachable
- watch: Keep the unread count in sync and print changes
"""

from __future__ import annotations

import click

from unreadsync.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    load_server_config,
    save_config,
)
from unreadsync.client.cli.configure import configure
from unreadsync.client.cli.count import count
from unreadsync.client.cli.health import health
from unreadsync.client.cli.watch import watch


@click.group()
@click.version_option(package_name="unreadsync")
def cli() -> None:
    """unreadsync - Unread chat message counter."""


cli.add_command(configure)
cli.add_command(count)
cli.add_command(health)
cli.add_command(watch)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "load_server_config",
    "save_config",
]
