"""Pytest fixtures for integration tests.

This module provides a real WebSocket push server running in a background
thread, so the push channel can be exercised end to end.
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
from collections.abc import Callable, Generator
from typing import Any

import pytest
from websockets.asyncio.server import ServerConnection, serve


class PushServer:
    """Minimal push server recording handshakes and broadcasting events."""

    def __init__(self) -> None:
        self.port = 0
        self.authorizations: list[str | None] = []
        self.connections: set[ServerConnection] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop: asyncio.Event | None = None
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._run, name="PushServer", daemon=True)

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}"

    def start(self) -> None:
        self._thread.start()
        if not self._ready.wait(timeout=10.0):
            raise RuntimeError("Push server did not start")

    def stop(self) -> None:
        if self._loop is not None and self._stop is not None:
            self._loop.call_soon_threadsafe(self._stop.set)
        self._thread.join(timeout=10.0)

    def send(self, event: str, **data: Any) -> None:
        """Send an event to every connected client."""
        message = json.dumps({"event": event, "data": data})
        self._call(self._broadcast(message))

    def drop_all(self) -> None:
        """Close every client connection from the server side."""
        self._call(self._close_all())

    def _call(self, coro: Any) -> None:
        assert self._loop is not None
        asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout=5.0)

    def _run(self) -> None:
        asyncio.run(self._serve())

    async def _serve(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        async with serve(self._handler, "127.0.0.1", 0) as server:
            self.port = list(server.sockets)[0].getsockname()[1]
            self._ready.set()
            await self._stop.wait()

    async def _handler(self, connection: ServerConnection) -> None:
        self.authorizations.append(connection.request.headers.get("Authorization"))
        self.connections.add(connection)
        try:
            await connection.wait_closed()
        finally:
            self.connections.discard(connection)

    async def _broadcast(self, message: str) -> None:
        for connection in list(self.connections):
            await connection.send(message)

    async def _close_all(self) -> None:
        for connection in list(self.connections):
            await connection.close()


def wait_until(predicate: Callable[[], bool], timeout: float = 10.0) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def push_server() -> Generator[PushServer, None, None]:
    """Run a push server for the duration of a test."""
    server = PushServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture(name="wait_until")
def wait_until_fixture() -> Callable[..., bool]:
    return wait_until
