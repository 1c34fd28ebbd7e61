"""Core module - Shared configuration and types."""

from unreadsync.core.config import (
    DEFAULT_COUNT_PATH,
    DEFAULT_PUSH_EVENTS,
    DEFAULT_PUSH_URL,
    DEFAULT_SERVER_URL,
    ConfigurationError,
    EngineConfig,
    ServerConfig,
    to_ws_url,
)
from unreadsync.core.types import ConnectionState, PushEvent, SyncPhase, Trigger

__all__ = [
    # Config
    "DEFAULT_COUNT_PATH",
    "DEFAULT_PUSH_EVENTS",
    "DEFAULT_PUSH_URL",
    "DEFAULT_SERVER_URL",
    "ConfigurationError",
    "EngineConfig",
    "ServerConfig",
    "to_ws_url",
    # Types
    "ConnectionState",
    "PushEvent",
    "SyncPhase",
    "Trigger",
]
