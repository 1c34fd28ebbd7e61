"""Configuration utilities for the unreadsync CLI.

Settings come from, in order: command-line options, environment variables,
the config file (~/.unreadsync/config.json), then built-in defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from unreadsync.core.config import (
    DEFAULT_PUSH_URL,
    DEFAULT_SERVER_URL,
    ConfigurationError,
    ServerConfig,
)

ENV_SERVER_URL = "UNREADSYNC_SERVER_URL"
ENV_PUSH_URL = "UNREADSYNC_PUSH_URL"
ENV_TOKEN = "UNREADSYNC_TOKEN"


def get_config_dir() -> Path:
    """Get the configuration directory for unreadsync.

    Returns:
        Path to ~/.unreadsync or equivalent.
    """
    return Path.home() / ".unreadsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        try:
            return dict(json.loads(config_file.read_text()))
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid config file {config_file}: {e}") from e
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))
    config_file.chmod(0o600)


def load_server_config(
    server_url: str | None = None,
    push_url: str | None = None,
    token: str | None = None,
) -> ServerConfig:
    """Resolve the server configuration.

    Args:
        server_url: Explicit API base URL.
        push_url: Explicit push endpoint URL.
        token: Explicit bearer token.

    Returns:
        ServerConfig with every value resolved.
    """
    config = load_config()
    return ServerConfig(
        server_url=(
            server_url
            or os.environ.get(ENV_SERVER_URL)
            or config.get("server_url")
            or DEFAULT_SERVER_URL
        ),
        push_url=(
            push_url
            or os.environ.get(ENV_PUSH_URL)
            or config.get("push_url")
            or DEFAULT_PUSH_URL
        ),
        token=token or os.environ.get(ENV_TOKEN) or config.get("auth_token") or "",
    )
