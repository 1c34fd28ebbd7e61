"""Thread-safe listener registry shared by the client components."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListenerSet(Generic[T]):
    """Set of callbacks notified with a single value.

    A failing listener is logged and never prevents the others
    from being notified.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def add(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Callable removing the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            self.discard(listener)

        return unsubscribe

    def discard(self, listener: Callable[[T], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def emit(self, value: T) -> None:
        """Notify every registered listener with ``value``."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("Error in %s listener", self._name)
