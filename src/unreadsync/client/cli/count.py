"""Count command for unreadsync CLI.

Commands:
- count: Fetch the unread count once
"""

from __future__ import annotations

import sys

import click

from unreadsync.client.api import HTTPClient
from unreadsync.client.cli.config import load_server_config
from unreadsync.client.fetcher import CountFetcher, NetworkError
from unreadsync.core.config import ConfigurationError


@click.command()
@click.option("--server-url", default=None, help="API base URL.")
@click.option("--token", default=None, help="Bearer token of the session.")
def count(server_url: str | None, token: str | None) -> None:
    """Fetch and print the unread message count."""
    try:
        server_config = load_server_config(server_url=server_url, token=token)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not server_config.token:
        click.echo("Error: No token configured. Use --token or 'unreadsync configure'.", err=True)
        sys.exit(1)

    fetcher = CountFetcher(HTTPClient(server_config))
    try:
        value = fetcher.fetch_count()
    except NetworkError as e:
        click.echo(f"Error: Could not fetch unread count: {e}", err=True)
        sys.exit(1)
    finally:
        fetcher.close()

    click.echo(str(value))
