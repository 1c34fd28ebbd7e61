"""Watch command for unreadsync CLI.

Commands:
- watch: Keep the unread count in sync and print every change
"""

from __future__ import annotations

import logging
import sys
import threading

import click

from unreadsync.client.bindings import UnreadCountProvider
from unreadsync.client.cli.config import load_server_config
from unreadsync.client.engine import SyncEngine, UnreadSnapshot
from unreadsync.client.session import Session, SessionStore
from unreadsync.core.config import ConfigurationError, EngineConfig


def setup_logging(verbose: bool) -> None:
    """Send unreadsync logs to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    unreadsync_logger = logging.getLogger("unreadsync")
    for existing in unreadsync_logger.handlers[:]:
        unreadsync_logger.removeHandler(existing)
    unreadsync_logger.addHandler(handler)
    unreadsync_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    unreadsync_logger.propagate = False


@click.command()
@click.option("--server-url", default=None, help="API base URL.")
@click.option("--push-url", default=None, help="Real-time push endpoint URL.")
@click.option("--token", default=None, help="Bearer token of the session.")
@click.option("--identity", default="cli", show_default=True, help="Session identity.")
@click.option(
    "--interval",
    type=float,
    default=60.0,
    show_default=True,
    help="Polling interval in seconds.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
def watch(
    server_url: str | None,
    push_url: str | None,
    token: str | None,
    identity: str,
    interval: float,
    verbose: bool,
) -> None:
    """Keep the unread count in sync and print it whenever it changes.

    Listens for real-time notifications and polls as a fallback.
    Press Ctrl+C to stop.
    """
    setup_logging(verbose)

    try:
        server_config = load_server_config(
            server_url=server_url, push_url=push_url, token=token
        )
        engine_config = EngineConfig(poll_interval=interval)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not server_config.token:
        click.echo("Error: No token configured. Use --token or 'unreadsync configure'.", err=True)
        sys.exit(1)

    engine = SyncEngine.from_config(server_config, engine_config)
    sessions = SessionStore()
    stop_event = threading.Event()
    last_shown: list[int] = []

    def on_change(snapshot: UnreadSnapshot) -> None:
        if snapshot.is_loading:
            return
        if last_shown and last_shown[-1] == snapshot.count:
            return
        last_shown.append(snapshot.count)
        click.echo(f"Unread messages: {snapshot.count}")

    click.echo(f"Watching unread messages on {server_config.server_url} (Ctrl+C to stop)")
    with UnreadCountProvider(engine, sessions) as provider:
        provider.subscribe(on_change)
        sessions.login(Session(identity=identity, token=server_config.token))
        try:
            while not stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            click.echo("\nStopping...")
        finally:
            sessions.logout()
