"""Consumer bindings over a single SyncEngine.

Two access styles share one engine instance:

- Context style: UnreadCountProvider installs itself for the duration of a
  ``with`` block and exposes the count to anything running inside it.
- Hook style: use_unread_count() returns the current values and the
  refresh callable from the innermost active provider.
"""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar, Token
from typing import NamedTuple

from unreadsync.client.engine import SnapshotListener, SyncEngine
from unreadsync.client.session import SessionObserver


_current_provider: ContextVar[UnreadCountProvider | None] = ContextVar(
    "unread_count_provider", default=None
)


class UnreadCountState(NamedTuple):
    """Values returned by use_unread_count()."""

    unread_count: int
    is_loading: bool
    refresh_unread_count: Callable[[], bool]


class UnreadCountProvider:
    """Bind a SyncEngine to a session observer for a scope.

    Usage:
        with UnreadCountProvider(engine, session_store) as provider:
            provider.subscribe(render)
            ...
            state = use_unread_count()
    """

    def __init__(self, engine: SyncEngine, observer: SessionObserver) -> None:
        self._engine = engine
        self._observer = observer
        self._unbind: Callable[[], None] | None = None
        self._token: Token[UnreadCountProvider | None] | None = None

    @property
    def engine(self) -> SyncEngine:
        return self._engine

    @property
    def unread_count(self) -> int:
        return self._engine.count

    @property
    def is_loading(self) -> bool:
        return self._engine.is_loading

    def refresh_unread_count(self) -> bool:
        """Manual refresh. Returns True if a fetch was issued."""
        return self._engine.refresh()

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self._engine.subscribe(listener)

    def __enter__(self) -> UnreadCountProvider:
        if self._token is not None:
            raise RuntimeError("UnreadCountProvider is already active")
        token = _current_provider.set(self)
        try:
            self._unbind = self._engine.bind(self._observer)
        except Exception:
            _current_provider.reset(token)
            raise
        self._token = token
        return self

    def __exit__(self, *args: object) -> None:
        if self._unbind is not None:
            self._unbind()
            self._unbind = None
        self._engine.on_session_anonymous()
        if self._token is not None:
            _current_provider.reset(self._token)
            self._token = None


def get_unread_count_context() -> UnreadCountProvider:
    """Return the innermost active provider.

    Raises:
        RuntimeError: If no provider is active.
    """
    provider = _current_provider.get()
    if provider is None:
        raise RuntimeError("use_unread_count must be used within an UnreadCountProvider")
    return provider


def use_unread_count() -> UnreadCountState:
    """Read the unread count from the active provider."""
    provider = get_unread_count_context()
    snapshot = provider.engine.snapshot()
    return UnreadCountState(
        unread_count=snapshot.count,
        is_loading=snapshot.is_loading,
        refresh_unread_count=provider.refresh_unread_count,
    )
