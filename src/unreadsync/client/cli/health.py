"""Health command for unreadsync CLI.

Commands:
- health: Check that the chat API is reachable
"""

from __future__ import annotations

import sys

import click

from unreadsync.client.api import HTTPClient
from unreadsync.client.cli.config import load_server_config
from unreadsync.core.config import ConfigurationError


@click.command()
@click.option("--server-url", default=None, help="API base URL.")
def health(server_url: str | None) -> None:
    """Check that the server answers its health endpoint."""
    try:
        server_config = load_server_config(server_url=server_url)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    with HTTPClient(server_config) as client:
        healthy = client.health_check()

    if not healthy:
        click.echo(f"Server {server_config.server_url} is unreachable or unhealthy", err=True)
        sys.exit(1)
    click.echo(f"Server {server_config.server_url} is healthy")
