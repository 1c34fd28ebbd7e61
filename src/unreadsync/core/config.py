"""Shared configuration classes for unreadsync.

This module defines the connection settings (ServerConfig) and the
synchronization policy settings (EngineConfig) used by the client components.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_SERVER_URL = "http://localhost:4000"
DEFAULT_PUSH_URL = "http://localhost:4003"
DEFAULT_COUNT_PATH = "/api/v1/chat/unread"

# Server-side events that can change the unread count
DEFAULT_PUSH_EVENTS: tuple[str, ...] = (
    "new_message_notification",
    "message_status_update",
)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def to_ws_url(url: str) -> str:
    """Convert an http(s) URL to its ws(s) equivalent."""
    if url.startswith("https://"):
        return "wss://" + url[8:]
    if url.startswith("http://"):
        return "ws://" + url[7:]
    return url


@dataclass
class ServerConfig:
    """Configuration for connecting to the marketplace API.

    Used by both the HTTP client (count endpoint) and the push channel
    to ensure consistent connection settings.

    Attributes:
        server_url: Base URL of the API (e.g., "https://api.example.com").
        token: Bearer token of the authenticated session.
        push_url: Real-time endpoint. Defaults to the server URL.
        count_path: Path of the unread count endpoint.
        timeout: Request/connection timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str = ""
    push_url: str | None = None
    count_path: str = DEFAULT_COUNT_PATH
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize URLs."""
        if not self.server_url:
            raise ConfigurationError("server_url is required")
        self.server_url = self.server_url.rstrip("/")
        if self.push_url:
            self.push_url = self.push_url.rstrip("/")
        if not self.count_path.startswith("/"):
            self.count_path = "/" + self.count_path

    def __repr__(self) -> str:
        """Never expose the token in repr."""
        return (
            f"ServerConfig(server_url={self.server_url!r}, "
            f"push_url={self.push_url!r}, token='***')"
        )

    @property
    def ws_url(self) -> str:
        """Get the WebSocket URL of the push endpoint."""
        return to_ws_url(self.push_url or self.server_url)

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS/WSS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")

    def with_token(self, token: str) -> ServerConfig:
        """Return a copy bound to another session token."""
        return ServerConfig(
            server_url=self.server_url,
            token=token,
            push_url=self.push_url,
            count_path=self.count_path,
            timeout=self.timeout,
            verify_ssl=self.verify_ssl,
        )


@dataclass
class EngineConfig:
    """Policy settings for the unread count engine.

    Attributes:
        throttle_interval: Minimum seconds between two fetches.
        poll_interval: Seconds between scheduled polls.
        error_threshold: Consecutive failures before polling is paused.
        cooldown: Seconds polling stays paused once the threshold is hit.
        push_events: Push event names that may change the count.
    """

    throttle_interval: float = 2.0
    poll_interval: float = 60.0
    error_threshold: int = 3
    cooldown: float = 30.0
    push_events: tuple[str, ...] = field(default=DEFAULT_PUSH_EVENTS)

    def __post_init__(self) -> None:
        if self.throttle_interval < 0:
            raise ConfigurationError("throttle_interval must not be negative")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.error_threshold < 1:
            raise ConfigurationError("error_threshold must be at least 1")
        if self.cooldown < 0:
            raise ConfigurationError("cooldown must not be negative")
        self.push_events = tuple(self.push_events)
