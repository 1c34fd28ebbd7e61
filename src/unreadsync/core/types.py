"""Shared types for unreadsync.

This module defines the enums exchanged between the push channel,
the poll scheduler and the sync engine.
"""

from __future__ import annotations

from enum import Enum


class SyncPhase(str, Enum):
    """Lifecycle phase of the sync engine.

    IDLE while no session is present, ACTIVE while synchronizing normally,
    DEGRADED while repeated failures have paused fetching.
    """

    IDLE = "idle"
    ACTIVE = "active"
    DEGRADED = "degraded"


class ConnectionState(str, Enum):
    """Connection state of a push channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PushEvent(str, Enum):
    """Abstract events emitted by a push channel."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CONNECT_ERROR = "connect_error"
    COUNT_MAY_HAVE_CHANGED = "count_may_have_changed"


class Trigger(str, Enum):
    """Source of a resync request."""

    INITIAL = "initial"
    PUSH = "push"
    POLL = "poll"
    MANUAL = "manual"
    RECONNECT = "reconnect"
