"""
WebSocket Transport

Owns one persistent streaming connection:
- connect with timeout, reconnect with exponential backoff and jitter
- application-level heartbeat (op=ping / pong) with dead-connection detection
- JSON framing in and out via msgspec
- ordered observer delivery for inbound messages and state changes

The transport is protocol agnostic apart from the ping payload; a private
session and a subscription manager are layered on top by registering
handlers.
"""

import asyncio
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from urllib.parse import urlparse

import msgspec
import websockets
from websockets.exceptions import ConnectionClosed

from config.structs import WebSocketConfig
from infrastructure.exceptions.exchange import NotConnectedError
from infrastructure.logging import LoggerInterface, get_logger
from infrastructure.networking.websocket.reconnect import ReconnectPolicy
from infrastructure.networking.websocket.structs import ConnectionState, TransportMetrics, is_pong
from utils.task_utils import TaskManager, cancel_tasks_with_timeout, invoke_handler, safe_close_connection

MessageHandler = Callable[[Any], Union[None, Awaitable[None]]]
StateHandler = Callable[[ConnectionState], Union[None, Awaitable[None]]]
ConnectMethod = Callable[[str], Awaitable[Any]]


class WebSocketTransport:
    """
    Persistent streaming connection with automatic reconnection.

    Args:
        url: WebSocket endpoint
        config: Timeouts, heartbeat and reconnect settings
        connect_method: Coroutine factory returning an open connection with
            send(), recv() and close(); defaults to websockets.connect
        logger: Injected logger
        clock: Monotonic clock used for connection uptime
        rng: Random source for backoff jitter
    """

    def __init__(
        self,
        url: str,
        config: Optional[WebSocketConfig] = None,
        connect_method: Optional[ConnectMethod] = None,
        logger: Optional[LoggerInterface] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.url = url
        self.config = config or WebSocketConfig()
        self._connect_method = connect_method or self._default_connect
        self.name = urlparse(url).netloc or "ws"
        self.logger = logger or get_logger(f"ws.transport.{self.name}")
        self._clock = clock
        self._policy = ReconnectPolicy(self.config, rng)

        self._state = ConnectionState.DISCONNECTED
        self._ws = None
        self._message_handlers: List[MessageHandler] = []
        self._state_handlers: List[StateHandler] = []

        self._tasks = TaskManager(f"ws.{self.name}")
        self._connection_task: Optional[asyncio.Task] = None
        self._connected_future: Optional[asyncio.Future] = None
        self._closing = False
        self._closed = False
        self._ping_seq = 0

        self._decoder = msgspec.json.Decoder()
        self.metrics = TransportMetrics()

    async def _default_connect(self, url: str):
        # Library-level pings are disabled, the exchange expects op=ping frames
        return await websockets.connect(
            url,
            open_timeout=self.config.connect_timeout,
            close_timeout=self.config.close_timeout,
            ping_interval=None,
            max_size=self.config.max_message_size,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._ws is not None

    @property
    def is_closed(self) -> bool:
        return self._closed

    # Observers

    def on_message(self, handler: MessageHandler) -> MessageHandler:
        """Register an inbound message observer. Observers run in registration order."""
        self._message_handlers.append(handler)
        return handler

    def on_state_change(self, handler: StateHandler) -> StateHandler:
        """Register a state observer. Observers run in registration order."""
        self._state_handlers.append(handler)
        return handler

    # Lifecycle

    async def connect(self) -> None:
        """
        Start the connection loop and wait for the first CONNECTED state.

        Raises:
            NotConnectedError: The transport was closed, or reconnect attempts
                were exhausted before a connection was established
        """
        if self._closed:
            raise NotConnectedError("Transport has been closed")

        if self._connection_task is None or self._connection_task.done():
            self._connected_future = asyncio.get_running_loop().create_future()
            # Retrieve the exception even when nobody awaits connect()
            self._connected_future.add_done_callback(
                lambda f: f.cancelled() or f.exception()
            )
            self._connection_task = asyncio.create_task(
                self._connection_loop(), name=f"ws.{self.name}.connection"
            )
            self._connection_task.add_done_callback(self._on_connection_loop_done)

        await asyncio.shield(self._connected_future)

    async def send(self, message: Union[Dict[str, Any], str]) -> None:
        """
        Send one frame. Dicts are JSON-encoded.

        Raises:
            NotConnectedError: The transport is not CONNECTED or the socket
                closed during the send
        """
        if not self.is_connected:
            raise NotConnectedError(f"Cannot send while {self._state.value}")

        payload = message if isinstance(message, str) else msgspec.json.encode(message).decode("utf-8")
        try:
            await self._ws.send(payload)
        except (ConnectionClosed, OSError) as e:
            raise NotConnectedError(f"Send failed: {e}") from e

    async def force_reconnect(self, reason: str = "forced reconnect") -> None:
        """Drop the current socket and let the connection loop reconnect."""
        ws = self._ws
        if ws is None or self._closing:
            return
        self.metrics.last_error = reason
        self.logger.info("Forcing reconnect", url=self.url, reason=reason)
        await safe_close_connection(ws, self.config.close_timeout, self.logger)

    async def close(self) -> None:
        """Stop heartbeat and reconnects and release the socket. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._closing = True

        await self._set_state(ConnectionState.CLOSING)

        ws, self._ws = self._ws, None
        await safe_close_connection(ws, self.config.close_timeout, self.logger)
        await self._tasks.shutdown(self.config.close_timeout, self.logger)

        if self._connection_task is not None and self._connection_task is not asyncio.current_task():
            await cancel_tasks_with_timeout([self._connection_task], self.config.close_timeout, self.logger)

        if self._connected_future is not None and not self._connected_future.done():
            self._connected_future.set_exception(NotConnectedError("Transport closed before connecting"))

        await self._set_state(ConnectionState.DISCONNECTED)
        self.logger.info("WebSocket transport closed", url=self.url)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Connection loop

    async def _connection_loop(self) -> None:
        attempt = 0
        failures = 0

        while not self._closing:
            await self._set_state(ConnectionState.CONNECTING)
            ws = await self._open()

            if ws is None:
                failures += 1
                self.metrics.failed_attempts += 1
                await self._set_state(ConnectionState.DISCONNECTED)
                if not self._policy.should_retry(failures):
                    self._give_up(failures)
                    return
            else:
                failures = 0
                connected_at = self._clock()
                await self._run_connection(ws)
                if self._closing:
                    break
                if self._policy.is_stable(self._clock() - connected_at):
                    attempt = 0
                await self._set_state(ConnectionState.DISCONNECTED)

            delay = self._policy.delay(attempt)
            attempt += 1
            self.logger.info("Reconnecting", url=self.url, delay=round(delay, 3), attempt=attempt)
            await asyncio.sleep(delay)

    async def _open(self):
        try:
            return await asyncio.wait_for(self._connect_method(self.url), timeout=self.config.connect_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Any failure to open is transient from the loop's point of view
            self.metrics.last_error = str(e) or type(e).__name__
            self.logger.warning("Connection attempt failed", url=self.url, error=self.metrics.last_error)
            return None

    async def _run_connection(self, ws) -> None:
        self._ws = ws
        pong_event = asyncio.Event()
        self.metrics.connections += 1
        if self.metrics.connections > 1:
            self.metrics.reconnects += 1
            self.logger.counter("ws_reconnects", url=self.url)
        self.logger.info("WebSocket connected", url=self.url, connection=self.metrics.connections)

        await self._set_state(ConnectionState.CONNECTED)
        if self._connected_future is not None and not self._connected_future.done():
            self._connected_future.set_result(None)

        heartbeat = self._tasks.create_task(self._heartbeat_loop(ws, pong_event), name="heartbeat")
        try:
            await self._read_loop(ws, pong_event)
        finally:
            heartbeat.cancel()
            if self._ws is ws:
                self._ws = None

        if not self._closing:
            await self._set_state(ConnectionState.CLOSING)
            await safe_close_connection(ws, self.config.close_timeout, self.logger)

    async def _read_loop(self, ws, pong_event: asyncio.Event) -> None:
        while not self._closing:
            try:
                raw = await ws.recv()
            except ConnectionClosed as e:
                if not self._closing:
                    self.metrics.last_error = f"connection closed: {e}"
                    self.logger.info("WebSocket closed", url=self.url, reason=str(e))
                return
            except OSError as e:
                self.metrics.last_error = str(e) or type(e).__name__
                self.logger.warning("WebSocket read failed", url=self.url, error=self.metrics.last_error)
                return

            self.metrics.messages_received += 1
            try:
                message = self._decoder.decode(raw)
            except msgspec.DecodeError as e:
                self.metrics.decode_errors += 1
                self.logger.warning("Dropping undecodable frame", url=self.url, error=str(e))
                self.logger.counter("ws_decode_errors", url=self.url)
                continue

            if is_pong(message):
                pong_event.set()
                continue

            await self._dispatch(message)

    async def _heartbeat_loop(self, ws, pong_event: asyncio.Event) -> None:
        while self._ws is ws:
            await asyncio.sleep(self.config.ping_interval)
            if self._ws is not ws:
                return

            pong_event.clear()
            self._ping_seq += 1
            ping = msgspec.json.encode({"op": "ping", "req_id": f"ping-{self._ping_seq}"}).decode("utf-8")
            try:
                await ws.send(ping)
            except (ConnectionClosed, OSError):
                return

            try:
                await asyncio.wait_for(pong_event.wait(), timeout=self.config.ping_timeout)
            except asyncio.TimeoutError:
                self.metrics.heartbeat_timeouts += 1
                self.metrics.last_error = "heartbeat timeout"
                self.logger.warning("No pong received, dropping connection",
                                    url=self.url, timeout=self.config.ping_timeout)
                self.logger.counter("ws_heartbeat_timeouts", url=self.url)
                await safe_close_connection(ws, self.config.close_timeout, self.logger)
                return

    def _give_up(self, failures: int) -> None:
        self.logger.error("Giving up on connection", url=self.url, attempts=failures,
                          last_error=self.metrics.last_error)
        if self._connected_future is not None and not self._connected_future.done():
            self._connected_future.set_exception(
                NotConnectedError(f"Could not connect after {failures} attempts: {self.metrics.last_error}")
            )

    def _on_connection_loop_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.critical("Connection loop crashed", url=self.url, error=repr(error))
            if self._connected_future is not None and not self._connected_future.done():
                self._connected_future.set_exception(NotConnectedError(f"Connection loop crashed: {error!r}"))

    # Observer delivery

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        self.logger.debug("State change", url=self.url, previous=previous.value, state=state.value)
        for handler in list(self._state_handlers):
            try:
                await invoke_handler(handler, state)
            except Exception as e:
                self.metrics.handler_errors += 1
                self.logger.error("State handler failed", url=self.url, state=state.value, error=repr(e))

    async def _dispatch(self, message: Any) -> None:
        for handler in list(self._message_handlers):
            try:
                await invoke_handler(handler, message)
            except Exception as e:
                self.metrics.handler_errors += 1
                self.logger.error("Message handler failed", url=self.url, error=repr(e))
