"""Real-time push channel for unread count notifications.

This module provides:
- PushChannel / PushHandle: transport-agnostic channel interface
- WebSocketPushChannel: WebSocket implementation with bounded reconnection

Architecture:
    Server ─push─► WebSocketPushHandle ─► listeners ─► SyncEngine
                          │
                   (reconnect with backoff + jitter, capped attempts)

The channel never carries the unread count itself. Every server event that
may change it is reported as PushEvent.COUNT_MAY_HAVE_CHANGED and the engine
resynchronizes through the fetcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import ssl
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from unreadsync.client.listeners import ListenerSet
from unreadsync.client.retry import NETWORK_EXCEPTIONS, ReconnectPolicy
from unreadsync.client.schemas import PushMessage
from unreadsync.core.config import DEFAULT_PUSH_EVENTS, to_ws_url
from unreadsync.core.types import ConnectionState, PushEvent

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)

PushListener = Callable[[PushEvent], None]


class PushHandle(ABC):
    """An open push subscription."""

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Current connection state."""

    @abstractmethod
    def subscribe(self, listener: PushListener) -> Callable[[], None]:
        """Register a listener for push events.

        Returns:
            Callable removing the listener.
        """


class PushChannel(ABC):
    """Factory opening and closing push subscriptions."""

    @abstractmethod
    def open(self, endpoint: str, token: str) -> PushHandle:
        """Open an authenticated subscription to ``endpoint``."""

    @abstractmethod
    def close(self, handle: PushHandle) -> None:
        """Close a subscription. Safe to call more than once."""


class WebSocketPushHandle(PushHandle):
    """WebSocket subscription running in a background thread.

    The connection loop owns its own asyncio event loop. Listeners are
    invoked from a dedicated dispatch thread, in arrival order, so a slow
    listener never stalls the socket.

    Usage:
        handle = WebSocketPushHandle("wss://push.example.com", token)
        unsubscribe = handle.subscribe(on_event)
        handle.start()
        # ...
        handle.stop()
    """

    def __init__(
        self,
        url: str,
        token: str,
        push_events: Iterable[str] = DEFAULT_PUSH_EVENTS,
        policy: ReconnectPolicy | None = None,
        verify_ssl: bool = True,
        open_timeout: float = 10.0,
    ) -> None:
        """Initialize the handle.

        Args:
            url: WebSocket (or http) URL of the push endpoint.
            token: Bearer token sent in the handshake.
            push_events: Event names that may change the unread count.
            policy: Reconnection policy.
            verify_ssl: Whether to verify SSL certificates.
            open_timeout: Handshake timeout in seconds.
        """
        self._url = to_ws_url(url)
        self._token = token
        self._push_events = frozenset(push_events)
        self._policy = policy or ReconnectPolicy()
        self._verify_ssl = verify_ssl
        self._open_timeout = open_timeout

        # Connection state
        self._ws: ClientConnection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._should_run = False
        self._closed = False

        # Thread and loop
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None  # For interruptible sleep

        self._listeners: ListenerSet[PushEvent] = ListenerSet("push")
        self._dispatcher = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="PushDispatch"
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Check if currently connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def ws_url(self) -> str:
        return self._url

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: PushListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def start(self) -> None:
        """Start the connection loop in a background thread."""
        if self._closed:
            raise RuntimeError("Push handle already closed")
        if self._thread and self._thread.is_alive():
            logger.warning("Push channel already running")
            return

        self._should_run = True
        self._thread = threading.Thread(
            target=self._run_loop,
            name="PushChannel",
            daemon=True,
        )
        self._thread.start()
        logger.info("Push channel started (%s)", self._url)

    def stop(self) -> None:
        """Stop the connection loop. No event is delivered afterwards."""
        if self._closed:
            return
        self._closed = True
        self._should_run = False
        self._listeners.clear()
        self._dispatcher.shutdown(wait=False, cancel_futures=True)

        loop = self._loop
        if loop is not None:
            # The loop may close between the check and the call
            with contextlib.suppress(RuntimeError):
                loop.call_soon_threadsafe(self._signal_stop)
            if self._ws is not None:
                with contextlib.suppress(TimeoutError, RuntimeError):
                    asyncio.run_coroutine_threadsafe(
                        self._close_connection(), loop
                    ).result(timeout=2.0)

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5.0)
        self._thread = None
        self._state = ConnectionState.DISCONNECTED

        logger.info("Push channel stopped")

    def _signal_stop(self) -> None:
        """Set the stop event to interrupt sleeps."""
        if self._stop_event:
            self._stop_event.set()

    def _emit(self, event: PushEvent) -> None:
        """Hand an event to the dispatch thread."""
        if self._closed:
            return
        with contextlib.suppress(RuntimeError):  # dispatcher shut down
            self._dispatcher.submit(self._dispatch, event)

    def _dispatch(self, event: PushEvent) -> None:
        if self._closed:
            return
        self._listeners.emit(event)

    def _run_loop(self) -> None:
        """Run the async event loop in a thread."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._stop_event = asyncio.Event()

        try:
            self._loop.run_until_complete(self._connection_loop())
        finally:
            self._loop.close()
            self._loop = None
            self._stop_event = None

    async def _connection_loop(self) -> None:
        """Main connection loop with bounded automatic reconnection."""
        failures = 0

        while self._should_run:
            self._state = ConnectionState.CONNECTING
            if not await self._try_connect():
                self._state = ConnectionState.DISCONNECTED
                if not self._should_run:
                    break
                failures += 1
                self._emit(PushEvent.CONNECT_ERROR)
                if self._policy.exhausted(failures):
                    logger.warning(
                        "Push channel giving up after %d failed attempts", failures
                    )
                    break
                if await self._sleep(self._policy.delay_for(failures)):
                    break
                continue

            failures = 0
            self._state = ConnectionState.CONNECTED
            self._emit(PushEvent.CONNECTED)

            try:
                await self._listen_for_messages()
            except WebSocketException as e:
                logger.warning("Push channel disconnected: %s", e)
            except Exception as e:
                logger.warning("Push channel error: %s", e)
                logger.debug("Full traceback:", exc_info=True)
            finally:
                await self._close_connection()

            if not self._should_run:
                break

            self._emit(PushEvent.DISCONNECTED)
            logger.info("Push channel connection lost, reconnecting")
            if await self._sleep(self._policy.delay_for(1)):
                break

    async def _try_connect(self) -> bool:
        """Attempt one connection. Returns True on success."""
        try:
            await self._connect()
            return True
        except WebSocketException as e:
            logger.debug("Push channel handshake failed: %s", e)
        except NETWORK_EXCEPTIONS as e:
            logger.debug("Push channel connection error: %s", e)
        except Exception as e:
            logger.warning("Push channel error: %s", e)
            logger.debug("Full traceback:", exc_info=True)
        return False

    async def _sleep(self, delay: float) -> bool:
        """Interruptible sleep. Returns True if stop was signaled."""
        logger.debug("Push channel retrying in %.1fs", delay)
        try:
            await asyncio.wait_for(
                self._stop_event.wait(),  # type: ignore[union-attr]
                timeout=delay,
            )
            return True
        except TimeoutError:
            return False

    async def _connect(self) -> None:
        """Establish the WebSocket connection."""
        ssl_context: ssl.SSLContext | None = None
        if self._url.startswith("wss://"):
            ssl_context = ssl.create_default_context()
            if not self._verify_ssl:
                ssl_context.check_hostname = False
                ssl_context.verify_mode = ssl.CERT_NONE

        self._ws = await websockets.connect(
            self._url,
            additional_headers={"Authorization": f"Bearer {self._token}"},
            ssl=ssl_context,
            open_timeout=self._open_timeout,
            close_timeout=5,
        )
        logger.info("Push channel connected")

    async def _listen_for_messages(self) -> None:
        """Listen for incoming messages from server."""
        while self._should_run and self._ws:
            try:
                message = await asyncio.wait_for(
                    self._ws.recv(),
                    timeout=30.0,  # Check should_run periodically
                )
            except TimeoutError:
                continue
            except websockets.ConnectionClosed:
                logger.info("Push connection closed by server")
                break
            await self._handle_message(message)

    async def _handle_message(self, message: str | bytes) -> None:
        """Handle an incoming message from the server.

        Messages are JSON objects naming the event under "event" or "type",
        e.g. {"event": "new_message_notification", "data": {...}}.
        Undecodable or malformed frames are logged and dropped.

        Args:
            message: Raw text or binary frame.
        """
        try:
            if isinstance(message, bytes):
                message = message.decode("utf-8")
            data = PushMessage.model_validate(json.loads(message))
        except (UnicodeDecodeError, json.JSONDecodeError, ValidationError):
            logger.warning("Invalid push message received: %r", message[:100])
            return

        if data.name in self._push_events:
            logger.debug("Push event received: %s", data.name)
            self._emit(PushEvent.COUNT_MAY_HAVE_CHANGED)
        else:
            logger.debug("Ignoring push event: %s", data.name)

    async def _close_connection(self) -> None:
        """Close the WebSocket connection."""
        if self._ws:
            with contextlib.suppress(WebSocketException):
                await self._ws.close()
            self._ws = None
        if self._state == ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED


class WebSocketPushChannel(PushChannel):
    """PushChannel opening one WebSocketPushHandle per subscription."""

    def __init__(
        self,
        push_events: Iterable[str] = DEFAULT_PUSH_EVENTS,
        policy: ReconnectPolicy | None = None,
        verify_ssl: bool = True,
    ) -> None:
        self._push_events = tuple(push_events)
        self._policy = policy
        self._verify_ssl = verify_ssl

    def open(self, endpoint: str, token: str) -> WebSocketPushHandle:
        handle = WebSocketPushHandle(
            endpoint,
            token,
            push_events=self._push_events,
            policy=self._policy,
            verify_ssl=self._verify_ssl,
        )
        handle.start()
        return handle

    def close(self, handle: PushHandle) -> None:
        if isinstance(handle, WebSocketPushHandle):
            handle.stop()
