"""Unread count synchronization engine.

This module provides:
- SyncEngine: keeps a client-side unread count consistent with the server
- SyncState: mutable state owned by the engine
- UnreadSnapshot: read-only view published to consumers

Architecture:
    SessionObserver ──► SyncEngine ◄── PushChannel (count may have changed)
                            │   ◄────── PollScheduler (tick)
                            │   ◄────── refresh() (manual)
                            ▼
                         Fetcher ──► GET /api/v1/chat/unread

Every trigger goes through request_resync(), which collapses them into at
most one in-flight fetch, spaced by the throttle interval, and suppressed
while a failure cooldown is in effect.

Push and poll callbacks arrive on their own threads. A lock guards the
check-and-set of the policy and the completion; fetches run outside it.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from unreadsync.client.fetcher import CountFetcher, Fetcher, NetworkError
from unreadsync.client.listeners import ListenerSet
from unreadsync.client.push import PushChannel, PushHandle, WebSocketPushChannel
from unreadsync.client.scheduler import PollScheduler
from unreadsync.core.config import EngineConfig, ServerConfig
from unreadsync.core.types import PushEvent, SyncPhase, Trigger

if TYPE_CHECKING:
    from unreadsync.client.retry import ReconnectPolicy
    from unreadsync.client.session import Session, SessionObserver

logger = logging.getLogger(__name__)

FetcherFactory = Callable[["Session"], Fetcher]
SnapshotListener = Callable[["UnreadSnapshot"], None]


@dataclass
class SyncState:
    """State of the engine.

    Attributes:
        count: Last known authoritative unread count.
        is_loading: True while a fetch is in flight.
        last_fetch_at: Clock reading of the last initiated fetch.
        consecutive_errors: Failed fetches since the last success.
        paused_until: Clock reading until which fetching is paused.
    """

    count: int = 0
    is_loading: bool = False
    last_fetch_at: float | None = None
    consecutive_errors: int = 0
    paused_until: float | None = None


@dataclass(frozen=True)
class UnreadSnapshot:
    """What consumers see of the engine state."""

    count: int = 0
    is_loading: bool = False


class SyncEngine:
    """Keeps one unread counter eventually consistent with the server.

    Usage:
        engine = SyncEngine.from_config(ServerConfig(server_url=url))
        unbind = engine.bind(session_store)
        engine.subscribe(lambda snap: print(snap.count))
        # ...
        unbind()
        engine.on_session_anonymous()
    """

    def __init__(
        self,
        fetcher_factory: FetcherFactory,
        push_channel: PushChannel,
        push_endpoint: str,
        scheduler: PollScheduler | None = None,
        config: EngineConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the engine.

        Args:
            fetcher_factory: Builds a fetcher for an authenticated session.
            push_channel: Channel opened for every session.
            push_endpoint: Endpoint handed to the push channel.
            scheduler: Poll scheduler (a new PollScheduler by default).
            config: Policy settings.
            clock: Monotonic clock in seconds.
        """
        self._fetcher_factory = fetcher_factory
        self._push_channel = push_channel
        self._push_endpoint = push_endpoint
        self._scheduler = scheduler or PollScheduler()
        self._config = config or EngineConfig()
        self._clock = clock

        self._state = SyncState()
        self._phase = SyncPhase.IDLE
        self._session: Session | None = None
        self._fetcher: Fetcher | None = None
        # Bumped on every start and stop; results of older epochs are stale
        self._epoch = 0

        self._push_handle: PushHandle | None = None
        self._unsubscribe_push: Callable[[], None] | None = None
        self._push_interrupted = False

        self._lock = threading.Lock()
        self._lifecycle_lock = threading.RLock()
        self._publish_lock = threading.RLock()
        self._published = UnreadSnapshot()
        self._listeners: ListenerSet[UnreadSnapshot] = ListenerSet("unread count")

    @classmethod
    def from_config(
        cls,
        server_config: ServerConfig,
        config: EngineConfig | None = None,
        policy: ReconnectPolicy | None = None,
    ) -> SyncEngine:
        """Build an engine talking to the chat API over HTTP and WebSocket."""
        config = config or EngineConfig()

        def make_fetcher(session: Session) -> Fetcher:
            return CountFetcher.for_token(server_config, session.token)

        return cls(
            fetcher_factory=make_fetcher,
            push_channel=WebSocketPushChannel(
                push_events=config.push_events,
                policy=policy,
                verify_ssl=server_config.verify_ssl,
            ),
            push_endpoint=server_config.ws_url,
            scheduler=PollScheduler(),
            config=config,
        )

    # === Reads ===

    @property
    def count(self) -> int:
        return self._state.count

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def phase(self) -> SyncPhase:
        return self._phase

    @property
    def state(self) -> SyncState:
        """Copy of the current state."""
        with self._lock:
            return dataclasses.replace(self._state)

    @property
    def identity(self) -> str | None:
        session = self._session
        return session.identity if session else None

    @property
    def config(self) -> EngineConfig:
        return self._config

    def snapshot(self) -> UnreadSnapshot:
        with self._lock:
            return UnreadSnapshot(self._state.count, self._state.is_loading)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called with every new snapshot."""
        return self._listeners.add(listener)

    # === Session lifecycle ===

    def bind(self, observer: SessionObserver) -> Callable[[], None]:
        """Follow the sessions published by ``observer``.

        The observer's current session is applied immediately.

        Returns:
            Callable that stops following the observer.
        """
        unsubscribe = observer.subscribe(self._on_session_changed)
        try:
            self._on_session_changed(observer.current)
        except Exception:
            unsubscribe()
            raise
        return unsubscribe

    def _on_session_changed(self, session: Session | None) -> None:
        if session is None:
            self.on_session_anonymous()
        else:
            self.on_session_authenticated(session)

    def on_session_authenticated(self, session: Session) -> None:
        """Start synchronizing for ``session``.

        Repeated calls for the same identity are ignored. A different
        identity tears the current run down first.
        """
        with self._lifecycle_lock:
            current = self._session
            if current is not None:
                if current.identity == session.identity:
                    logger.debug("Unread count sync already active for %s", session.identity)
                    return
                logger.info(
                    "Session identity changed (%s -> %s), restarting unread count sync",
                    current.identity,
                    session.identity,
                )
                self._teardown()

            fetcher = self._fetcher_factory(session)
            with self._lock:
                self._epoch += 1
                self._session = session
                self._fetcher = fetcher
                self._state = SyncState()
                self._phase = SyncPhase.ACTIVE
                self._push_interrupted = False

            handle = self._push_channel.open(self._push_endpoint, session.token)
            self._push_handle = handle
            self._unsubscribe_push = handle.subscribe(self._on_push_event)
            self._scheduler.start(self._config.poll_interval, self._on_poll_tick)
            logger.info("Unread count sync started for %s", session.identity)

        self.request_resync(Trigger.INITIAL)

    def on_session_anonymous(self) -> None:
        """Stop synchronizing and reset the count. Safe when idle."""
        with self._lifecycle_lock:
            if self._session is None:
                return
            identity = self._session.identity
            self._teardown()
        logger.info("Unread count sync stopped for %s", identity)
        self._publish()

    def close(self) -> None:
        """Alias of on_session_anonymous() for scoped use."""
        self.on_session_anonymous()

    def __enter__(self) -> SyncEngine:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _teardown(self) -> None:
        """Release the channel and the scheduler, then reset the state."""
        if self._unsubscribe_push is not None:
            self._unsubscribe_push()
            self._unsubscribe_push = None
        if self._push_handle is not None:
            try:
                self._push_channel.close(self._push_handle)
            except Exception:
                logger.exception("Error closing push channel")
            self._push_handle = None
        self._scheduler.stop()

        with self._lock:
            fetcher = self._fetcher
            in_flight = self._state.is_loading
            self._epoch += 1
            self._session = None
            self._fetcher = None
            self._state = SyncState()
            self._phase = SyncPhase.IDLE

        # An in-flight fetch closes its fetcher once it resolves
        if fetcher is not None and not in_flight:
            fetcher.close()

    # === Triggers ===

    def refresh(self) -> bool:
        """Manual refresh requested by a consumer."""
        return self.request_resync(Trigger.MANUAL)

    def _on_poll_tick(self) -> None:
        self.request_resync(Trigger.POLL)

    def _on_push_event(self, event: PushEvent) -> None:
        if event == PushEvent.COUNT_MAY_HAVE_CHANGED:
            self.request_resync(Trigger.PUSH)
        elif event == PushEvent.CONNECTED:
            logger.info("Unread count push channel connected")
            if self._push_interrupted:
                # Pick up anything missed while offline
                self._push_interrupted = False
                self.request_resync(Trigger.RECONNECT)
        elif event == PushEvent.DISCONNECTED:
            logger.warning("Unread count push channel disconnected")
            self._push_interrupted = True
        elif event == PushEvent.CONNECT_ERROR:
            logger.debug("Unread count push channel connection error")
            self._push_interrupted = True

    def request_resync(self, trigger: Trigger = Trigger.MANUAL) -> bool:
        """Request a resynchronization of the unread count.

        The request is dropped when a fetch is in flight, when the last
        fetch started less than the throttle interval ago, or while a
        failure cooldown is in effect.

        Args:
            trigger: What asked for the resync.

        Returns:
            True if a fetch was issued.
        """
        with self._lock:
            if self._phase == SyncPhase.IDLE or self._fetcher is None:
                logger.debug("Dropping %s resync: no session", trigger.value)
                return False

            now = self._clock()
            state = self._state
            if state.is_loading:
                logger.debug("Dropping %s resync: fetch in flight", trigger.value)
                return False
            if (
                state.last_fetch_at is not None
                and now - state.last_fetch_at < self._config.throttle_interval
            ):
                logger.debug("Dropping %s resync: throttled", trigger.value)
                return False
            if (
                self._phase == SyncPhase.DEGRADED
                and state.paused_until is not None
                and now < state.paused_until
            ):
                logger.debug(
                    "Dropping %s resync: paused for %.0fs",
                    trigger.value,
                    state.paused_until - now,
                )
                return False

            state.is_loading = True
            state.last_fetch_at = now
            epoch = self._epoch
            fetcher = self._fetcher

        logger.debug("Fetching unread count (%s)", trigger.value)
        self._publish()

        try:
            count = fetcher.fetch_count()
            if count < 0:
                raise NetworkError(f"Negative unread count: {count}")
        except NetworkError as e:
            self._complete(epoch, fetcher, error=e)
        except Exception as e:
            logger.exception("Unexpected error fetching unread count")
            self._complete(epoch, fetcher, error=e)
        else:
            self._complete(epoch, fetcher, count=count)
        return True

    def _complete(
        self,
        epoch: int,
        fetcher: Fetcher,
        count: int | None = None,
        error: Exception | None = None,
    ) -> None:
        """Apply the outcome of a fetch started during ``epoch``."""
        recovered = False
        paused_for: float | None = None
        with self._lock:
            stale = epoch != self._epoch
            if not stale:
                state = self._state
                state.is_loading = False
                if error is None and count is not None:
                    state.count = count
                    state.consecutive_errors = 0
                    state.paused_until = None
                    recovered = self._phase == SyncPhase.DEGRADED
                    self._phase = SyncPhase.ACTIVE
                else:
                    state.consecutive_errors += 1
                    errors = state.consecutive_errors
                    if errors >= self._config.error_threshold:
                        state.paused_until = self._clock() + self._config.cooldown
                        self._phase = SyncPhase.DEGRADED
                        paused_for = self._config.cooldown

        if stale:
            logger.debug("Discarding unread count result from a previous session")
            fetcher.close()
            return

        if error is not None:
            logger.warning("Error fetching unread count: %s", error)
            if paused_for is not None:
                logger.warning(
                    "Multiple errors fetching unread count (%d), pausing for %.0fs",
                    errors,
                    paused_for,
                )
        elif recovered:
            logger.info("Unread count sync recovered")

        self._publish()

    def _publish(self) -> None:
        """Notify listeners if the visible snapshot changed."""
        with self._publish_lock:
            snapshot = self.snapshot()
            if snapshot == self._published:
                return
            self._published = snapshot
            self._listeners.emit(snapshot)
