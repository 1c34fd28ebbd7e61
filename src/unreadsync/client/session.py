"""Authenticated session signal.

The engine only observes sessions: login and logout flows live elsewhere
and publish their outcome through a SessionObserver.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from unreadsync.client.listeners import ListenerSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """An authenticated session.

    Attributes:
        identity: Stable identifier of the user (e.g. the user id).
        token: Bearer token used for API and push authentication.
    """

    identity: str
    token: str

    def __repr__(self) -> str:
        """Never expose the token in repr."""
        return f"Session(identity={self.identity!r}, token='***')"


SessionListener = Callable[[Session | None], None]


class SessionObserver(ABC):
    """Source of session transitions. None means anonymous."""

    @property
    @abstractmethod
    def current(self) -> Session | None:
        """The current session, or None when anonymous."""

    @abstractmethod
    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener for session transitions.

        Returns:
            Callable removing the listener.
        """


class SessionStore(SessionObserver):
    """In-memory session holder notifying listeners on every change."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session
        self._lock = threading.Lock()
        self._listeners: ListenerSet[Session | None] = ListenerSet("session")

    @property
    def current(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def login(self, session: Session) -> None:
        """Publish an authenticated session."""
        self._set(session)

    def logout(self) -> None:
        """Publish the anonymous state."""
        self._set(None)

    def _set(self, session: Session | None) -> None:
        with self._lock:
            if session == self._session:
                return
            self._session = session
        logger.debug(
            "Session changed: %s",
            session.identity if session else "anonymous",
        )
        self._listeners.emit(session)
