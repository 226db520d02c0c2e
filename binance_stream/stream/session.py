"""
Stream session: one logical subscription bound to one live socket.

Handles the socket lifecycle including:
- CLOSED -> PENDING -> OPEN state machine, PENDING doubling as a restart lock
- Seamless restart: a second socket is opened next to the live one and swapped
  in once it confirms, so no message is dropped or delivered twice
- Deferred close while a socket is still opening
- Heartbeat liveness detection
- Decoding and broadcasting of inbound events
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Sequence, Union

from binance_stream.adapters.aiohttp_socket import AiohttpSocketFactory
from binance_stream.config.configs import StreamConfig
from binance_stream.core.events import ListenerRegistry
from binance_stream.errors.errors import SubscriptionError, TransportError
from binance_stream.ports.beautifier import Beautifier, IdentityBeautifier
from binance_stream.ports.socket import SocketFactory, StreamSocket
from binance_stream.stream.decode import decode_frame
from binance_stream.stream.heartbeat import Heartbeat
from binance_stream.stream.types import EventKey, SessionEvent, SessionState, SessionStats

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class StreamSession:
    """
    Manages the socket behind a single stream subscription.

    State Machine:
        [CLOSED] --restart()--> [PENDING] --socket open--> [OPEN]
                                    ^                         |
                                    +-------restart()---------+
        [PENDING|OPEN] --close() / peer close / dead peer--> [CLOSED]

    While PENDING every further ``restart()`` is ignored and ``close()`` is
    deferred until the in-flight open resolves. The session owns exactly one
    active socket; during a restart the replacement socket stays private
    until it is swapped in.

    Usage:
        session = StreamSession("btcusdt@aggTrade")
        session.on("aggTrade", lambda event: print(event))
        session.on(SessionEvent.CLOSE, lambda: print("closed"))

        await session.start()
        # ... refresh the connection without losing data ...
        await session.restart()
        # ... later ...
        await session.close()
    """

    def __init__(
        self,
        path: Union[str, Sequence[str]] = "",
        config: Optional[StreamConfig] = None,
        *,
        socket_factory: Optional[SocketFactory] = None,
        beautifier: Optional[Beautifier] = None,
        name: str = "stream",
    ) -> None:
        """
        Initialize the session. No socket is opened until ``start()``.

        Args:
            path: Feed identifier, or identifiers joined with ``/``
            config: Stream configuration
            socket_factory: Creates a socket handle for a URL (aiohttp by default)
            beautifier: Field renamer applied when ``config.beautify`` is set
            name: Name for logging purposes
        """
        self._config = config or StreamConfig()
        self._path: Union[str, list[str]] = path if isinstance(path, str) else list(path)
        self._socket_factory: SocketFactory = socket_factory or AiohttpSocketFactory()
        self._beautifier: Optional[Beautifier] = None
        if self._config.beautify:
            self._beautifier = beautifier or IdentityBeautifier()
        self._name = name

        # State
        self._state = SessionState.CLOSED
        self._socket: Optional[StreamSocket] = None
        self._candidate: Optional[StreamSocket] = None  # replacement being opened by restart()
        self._deferred_close = False  # at most one close waiting on the in-flight open
        self._open_waiters: list[asyncio.Future[None]] = []

        # Liveness
        self._heartbeat: Optional[Heartbeat] = None
        self._heartbeat_interval_s = self._config.heartbeat_interval_s

        self._listeners: ListenerRegistry[EventKey] = ListenerRegistry(name=name)
        self._stats = SessionStats()

    # --- Properties ---

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == SessionState.OPEN

    @property
    def is_closed(self) -> bool:
        return self._state == SessionState.CLOSED

    @property
    def config(self) -> StreamConfig:
        return self._config

    @property
    def path(self) -> str:
        """Subscription path as sent to the endpoint."""
        if isinstance(self._path, list):
            return "/".join(self._path)
        return self._path

    @path.setter
    def path(self, value: Union[str, Sequence[str]]) -> None:
        self._ensure_path_mutable()
        self._path = value if isinstance(value, str) else list(value)

    @property
    def url(self) -> str:
        """Full URL for the current path."""
        return self._url_prefix() + self.path

    @property
    def socket(self) -> Optional[StreamSocket]:
        """The active socket handle, or None while CLOSED."""
        return self._socket

    @property
    def heartbeat(self) -> Optional[Heartbeat]:
        return self._heartbeat

    @property
    def heartbeat_interval_s(self) -> float:
        return self._heartbeat_interval_s

    @property
    def stats(self) -> SessionStats:
        """Session counters."""
        return self._stats

    def _url_prefix(self) -> str:
        return self._config.single_stream_url

    def _ensure_path_mutable(self) -> None:
        # The endpoint binds to the path at connect time
        if self._state != SessionState.CLOSED:
            raise SubscriptionError(
                "Subscription path cannot change while the session is "
                f"{self._state.value}; close it first",
                path=self.path,
                component=type(self).__name__,
            )

    # --- Listener registration ---

    def on(self, event: EventKey, listener: Listener) -> None:
        """
        Subscribe to a lifecycle event or an exchange event type.

        ``open``, ``restart`` and ``close`` handlers take no arguments;
        ``all`` and event type handlers (``"kline"``, ``"executionReport"``,
        ...) receive the decoded payload.
        """
        self._listeners.add(event, listener)

    def once(self, event: EventKey, listener: Listener) -> None:
        self._listeners.add(event, listener, once=True)

    def off(self, event: EventKey, listener: Listener) -> None:
        self._listeners.remove(event, listener)

    def listener_count(self, event: EventKey) -> int:
        return self._listeners.count(event)

    def _emit(self, event: EventKey, *args: Any) -> None:
        self._listeners.emit(event, *args)

    # --- Lifecycle ---

    async def start(self, interval_s: Optional[float] = None) -> None:
        """Alias for ``restart``."""
        await self.restart(interval_s)

    async def restart(self, interval_s: Optional[float] = None) -> None:
        """
        Start the stream, or renew its connection without losing data.

        Args:
            interval_s: Heartbeat interval override, honoured only when
                starting from CLOSED
        """
        if self._state == SessionState.PENDING:
            logger.debug(f"[{self._name}] Restart ignored, connection already pending")
            return

        if self._state == SessionState.CLOSED:
            if interval_s:
                self._heartbeat_interval_s = interval_s
            self._open_first()
        else:
            self._open_replacement()

    async def close(self) -> None:
        """
        Close the session.

        While a socket is still opening the close is deferred until that
        open resolves, so no half-initialized socket is left behind.
        """
        self._request_close()

    async def wait_open(self, timeout_s: Optional[float] = None) -> None:
        """
        Wait until the session is OPEN.

        Raises:
            TransportError: If the session closes first
            asyncio.TimeoutError: If ``timeout_s`` elapses first
        """
        if self._state == SessionState.OPEN:
            return

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._open_waiters.append(future)
        try:
            await asyncio.wait_for(future, timeout=timeout_s)
        finally:
            if future in self._open_waiters:
                self._open_waiters.remove(future)

    def _wake_open_waiters(self) -> None:
        """Resolve ``wait_open`` callers on any transition into OPEN."""
        waiters, self._open_waiters = self._open_waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(None)

    def _fail_open_waiters(self) -> None:
        waiters, self._open_waiters = self._open_waiters, []
        for future in waiters:
            if not future.done():
                future.set_exception(
                    TransportError(
                        "Session closed before opening",
                        url=self._url_for_log(),
                        component=type(self).__name__,
                    )
                )

    def _open_first(self) -> None:
        """CLOSED -> PENDING: open the first socket."""
        logger.info(f"[{self._name}] Connecting to {self._url_for_log()}")
        sock = self._socket_factory(self.url)
        self._socket = sock
        self._state = SessionState.PENDING
        self._attach(sock)

        def on_open() -> None:
            sock.off("open", on_open)
            self._handle_first_open(sock)

        sock.on("open", on_open)

    def _handle_first_open(self, sock: StreamSocket) -> None:
        if sock is not self._socket:
            return

        if self._deferred_close:
            logger.info(f"[{self._name}] Close requested while connecting, dropping connection")
            self._close_now()
            return

        self._state = SessionState.OPEN
        self._stats.opens += 1
        self._stats.opened_at = time.monotonic()
        self._start_heartbeat()
        logger.info(f"[{self._name}] Connected")
        self._wake_open_waiters()
        self._emit(SessionEvent.OPEN)

    def _open_replacement(self) -> None:
        """OPEN -> PENDING: open a parallel socket to swap in."""
        logger.info(f"[{self._name}] Restarting, opening replacement connection")
        candidate = self._socket_factory(self.url)
        self._candidate = candidate
        self._state = SessionState.PENDING

        def on_open() -> None:
            candidate.off("open", on_open)
            candidate.off("close", on_fail)
            self._complete_swap(candidate)

        def on_fail() -> None:
            candidate.off("open", on_open)
            candidate.off("close", on_fail)
            self._abort_swap(candidate)

        candidate.on("open", on_open)
        candidate.on("close", on_fail)
        candidate.on("error", self._handle_error)

    def _complete_swap(self, candidate: StreamSocket) -> None:
        if candidate is not self._candidate:
            return
        self._candidate = None

        if self._deferred_close:
            logger.info(f"[{self._name}] Close requested during restart, dropping replacement")
            self._release(candidate)
            self._close_now()
            return

        old = self._socket
        if old is not None:
            # Same handler objects, so delivery continues unchanged on the new socket
            for event in old.event_names():
                for listener in old.listeners(event):
                    if listener not in candidate.listeners(event):
                        candidate.on(event, listener)

        self._socket = candidate
        if old is not None:
            # Detached first: the old socket's close must not close the session
            self._release(old)

        self._state = SessionState.OPEN
        if self._heartbeat is not None:
            self._heartbeat.record_pong()
        self._stats.restarts += 1
        self._stats.last_restart_at = time.monotonic()
        logger.info(f"[{self._name}] Restart complete, switched to new connection")
        self._wake_open_waiters()
        self._emit(SessionEvent.RESTART)

    def _abort_swap(self, candidate: StreamSocket) -> None:
        if candidate is not self._candidate:
            return
        self._candidate = None
        self._release(candidate)
        self._stats.failed_restarts += 1
        logger.warning(f"[{self._name}] Replacement connection failed, keeping current one")

        if self._deferred_close:
            self._close_now()
            return
        self._state = SessionState.OPEN
        self._wake_open_waiters()

    def _request_close(self) -> None:
        if self._state == SessionState.CLOSED:
            return
        if self._state == SessionState.PENDING:
            if not self._deferred_close:
                logger.debug(f"[{self._name}] Close deferred until pending open resolves")
            self._deferred_close = True
            return
        self._close_now()

    def _close_now(self) -> None:
        """Terminal transition to CLOSED; emits ``close`` exactly once."""
        if self._state == SessionState.CLOSED:
            return

        sock, candidate = self._socket, self._candidate
        self._socket = None
        self._candidate = None
        for handle in (candidate, sock):
            if handle is not None:
                self._release(handle)

        if self._heartbeat is not None:
            self._heartbeat.cancel()
            self._heartbeat = None

        self._deferred_close = False
        self._state = SessionState.CLOSED
        logger.info(f"[{self._name}] Closed")
        self._fail_open_waiters()
        self._emit(SessionEvent.CLOSE)

    def _start_heartbeat(self) -> None:
        if self._heartbeat is not None:
            return
        self._heartbeat = Heartbeat(
            interval_s=self._heartbeat_interval_s,
            send_ping=self._send_ping,
            on_dead=self._handle_dead_peer,
            name=self._name,
        )
        self._heartbeat.start()

    # --- Socket plumbing ---

    def _attach(self, sock: StreamSocket) -> None:
        sock.on("message", self._handle_message)
        sock.on("pong", self._handle_pong)
        sock.on("error", self._handle_error)
        sock.on("close", self._handle_close)

    def _release(self, sock: StreamSocket) -> None:
        for event in sock.event_names():
            for listener in sock.listeners(event):
                sock.off(event, listener)
        sock.terminate()

    def _send_ping(self) -> None:
        if self._socket is None:
            return
        self._socket.ping()
        self._stats.pings_sent += 1

    def _handle_dead_peer(self) -> None:
        self._stats.dead_peers += 1
        self._request_close()

    def _handle_message(self, raw: Union[str, bytes]) -> None:
        self._stats.messages_received += 1
        self._stats.last_message_at = time.monotonic()

        frame = decode_frame(raw, self._beautifier)
        if frame.error is not None:
            self._stats.decode_errors += 1
            logger.debug(f"[{self._name}] Passing through raw frame: {frame.error}")

        self._emit(SessionEvent.ALL, frame.payload)
        if frame.event_type:
            self._emit(frame.event_type, frame.payload)

    def _handle_pong(self, *_: Any) -> None:
        self._stats.pongs_received += 1
        if self._heartbeat is not None:
            self._heartbeat.record_pong()

    def _handle_error(self, error: Exception) -> None:
        # Transport errors never escape the session; the close that follows drives the state
        self._stats.transport_errors += 1
        logger.warning(f"[{self._name}] Transport error: {error}")

    def _handle_close(self) -> None:
        if self._state == SessionState.PENDING and self._candidate is None:
            logger.warning(f"[{self._name}] Connection to {self._url_for_log()} failed")
            self._close_now()
            return

        logger.info(f"[{self._name}] Connection closed by peer")
        self._request_close()

    def _url_for_log(self) -> str:
        return self.url
