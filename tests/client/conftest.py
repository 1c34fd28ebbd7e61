"""Shared fakes for client tests.

The engine is driven deterministically: a manual clock, a scripted fetcher,
an in-memory push channel and a scheduler ticked by hand.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from unreadsync.client.engine import SyncEngine
from unreadsync.client.fetcher import NetworkError
from unreadsync.client.listeners import ListenerSet
from unreadsync.client.push import PushChannel, PushHandle
from unreadsync.client.session import Session
from unreadsync.core.config import EngineConfig
from unreadsync.core.types import ConnectionState, PushEvent


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """Fetcher returning scripted results.

    Each entry of ``results`` is an int to return, an exception to raise,
    or a callable run during the fetch (its return value is used).
    """

    def __init__(self, results: list[Any] | None = None) -> None:
        self.results: list[Any] = list(results or [])
        self.calls = 0
        self.closed = False

    def fetch_count(self) -> int:
        self.calls += 1
        if not self.results:
            raise NetworkError("no scripted result")
        result = self.results.pop(0)
        if callable(result) and not isinstance(result, type):
            result = result()
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


class FakePushHandle(PushHandle):
    def __init__(self, endpoint: str, token: str) -> None:
        self.endpoint = endpoint
        self.token = token
        self.closed = False
        self._state = ConnectionState.CONNECTING
        self.listeners: ListenerSet[PushEvent] = ListenerSet("fake push")

    @property
    def state(self) -> ConnectionState:
        return self._state

    def subscribe(self, listener: Callable[[PushEvent], None]) -> Callable[[], None]:
        return self.listeners.add(listener)

    def emit(self, event: PushEvent) -> None:
        if event == PushEvent.CONNECTED:
            self._state = ConnectionState.CONNECTED
        elif event in (PushEvent.DISCONNECTED, PushEvent.CONNECT_ERROR):
            self._state = ConnectionState.DISCONNECTED
        if not self.closed:
            self.listeners.emit(event)


class FakePushChannel(PushChannel):
    def __init__(self) -> None:
        self.handles: list[FakePushHandle] = []

    @property
    def current(self) -> FakePushHandle:
        return self.handles[-1]

    @property
    def open_handles(self) -> list[FakePushHandle]:
        return [h for h in self.handles if not h.closed]

    def open(self, endpoint: str, token: str) -> FakePushHandle:
        handle = FakePushHandle(endpoint, token)
        self.handles.append(handle)
        return handle

    def close(self, handle: PushHandle) -> None:
        assert isinstance(handle, FakePushHandle)
        handle.closed = True


class FakeScheduler:
    """Poll scheduler ticked by hand."""

    def __init__(self) -> None:
        self.interval: float | None = None
        self.on_tick: Callable[[], None] | None = None
        self.starts = 0

    @property
    def running(self) -> bool:
        return self.on_tick is not None

    def start(self, interval: float, on_tick: Callable[[], None]) -> None:
        if self.on_tick is not None:
            return
        self.starts += 1
        self.interval = interval
        self.on_tick = on_tick

    def stop(self) -> None:
        self.on_tick = None
        self.interval = None

    def tick(self) -> None:
        if self.on_tick is not None:
            self.on_tick()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def built_for() -> list[Session]:
    """Sessions the engine built a fetcher for."""
    return []


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def push_channel() -> FakePushChannel:
    return FakePushChannel()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def session() -> Session:
    return Session(identity="user-1", token="token-1")


@pytest.fixture
def engine(
    fetcher: FakeFetcher,
    built_for: list[Session],
    push_channel: FakePushChannel,
    scheduler: FakeScheduler,
    clock: FakeClock,
) -> SyncEngine:
    """Engine wired to fakes. Every session shares ``fetcher``."""

    def make_fetcher(session: Session) -> FakeFetcher:
        built_for.append(session)
        return fetcher

    return SyncEngine(
        fetcher_factory=make_fetcher,
        push_channel=push_channel,
        push_endpoint="ws://push.test",
        scheduler=scheduler,  # type: ignore[arg-type]
        config=EngineConfig(),
        clock=clock,
    )
