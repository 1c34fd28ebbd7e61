"""Configure command for unreadsync CLI.

Commands:
- configure: Save server URLs and token to the config file
"""

from __future__ import annotations

import click

from unreadsync.client.cli.config import get_config_file, load_config, save_config


@click.command()
@click.option("--server-url", default=None, help="API base URL (e.g., https://api.example.com).")
@click.option("--push-url", default=None, help="Real-time push endpoint URL.")
@click.option("--token", default=None, help="Bearer token of the session.")
def configure(server_url: str | None, push_url: str | None, token: str | None) -> None:
    """Save connection settings for later commands."""
    config = load_config()
    if server_url:
        config["server_url"] = server_url.rstrip("/")
    if push_url:
        config["push_url"] = push_url.rstrip("/")
    if token:
        config["auth_token"] = token

    save_config(config)
    click.echo(f"Configuration saved to {get_config_file()}")
