"""
aiohttp implementation of the StreamSocket port.

One ``AiohttpSocket`` wraps one WebSocket connection:
- Connection establishment with timeout, started on construction
- Raw text frames delivered to ``message`` listeners (no parsing here)
- Ping/pong control frames surfaced to the owner
- A single ``close`` notification however the connection ends
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from binance_stream.core.events import SocketEmitter
from binance_stream.errors.errors import TransportError

logger = logging.getLogger(__name__)


class AiohttpSocket(SocketEmitter):
    """
    WebSocket handle driven by a background receive task.

    Must be created from inside a running event loop. When no
    ``aiohttp.ClientSession`` is supplied the socket owns a private one and
    closes it together with the connection.
    """

    def __init__(
        self,
        url: str,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        connect_timeout_s: float = 30.0,
        name: str = "socket",
    ) -> None:
        super().__init__(url)
        self._name = name
        self._session = session
        self._owns_session = session is None
        self._connect_timeout_s = connect_timeout_s

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._closed = False
        self._ping_tasks: set[asyncio.Task[None]] = set()

        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"{self._name}_receive"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    async def _run(self) -> None:
        """Connect, then pump frames until the connection ends."""
        try:
            await self._connect()
            self._emit("open")
            await self._receive_loop()
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Receive task cancelled")
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning(f"[{self._name}] Transport error on {self._url}: {e}")
            self._emit(
                "error",
                TransportError(str(e) or type(e).__name__, url=self._url, component="AiohttpSocket"),
            )
        finally:
            await self._cleanup()
            self._emit_close()

    async def _connect(self) -> None:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

        logger.debug(f"[{self._name}] Connecting to {self._url}")
        # Pings are answered here, pongs are reported to the session heartbeat
        self._ws = await asyncio.wait_for(
            self._session.ws_connect(self._url, autoping=False),
            timeout=self._connect_timeout_s,
        )

    async def _receive_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return

        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._emit("message", msg.data)

            elif msg.type == aiohttp.WSMsgType.BINARY:
                logger.debug(f"[{self._name}] Received binary message (ignored)")

            elif msg.type == aiohttp.WSMsgType.PING:
                await ws.pong(msg.data)

            elif msg.type == aiohttp.WSMsgType.PONG:
                self._emit("pong")

            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING):
                logger.info(f"[{self._name}] Server closed connection")
                break

            elif msg.type == aiohttp.WSMsgType.ERROR:
                error = ws.exception()
                logger.warning(f"[{self._name}] WebSocket error: {error}")
                self._emit(
                    "error",
                    TransportError(str(error), url=self._url, component="AiohttpSocket"),
                )
                break

    async def _cleanup(self) -> None:
        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"[{self._name}] Error closing websocket: {e}")
        self._ws = None

        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _emit_close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._emit("close")

    def ping(self) -> None:
        """Schedule a ping frame; silently skipped when not connected."""
        if self._ws is None or self._ws.closed:
            return
        task = asyncio.get_running_loop().create_task(self._send_ping(self._ws))
        self._ping_tasks.add(task)
        task.add_done_callback(self._ping_tasks.discard)

    async def _send_ping(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            await ws.ping()
        except Exception as e:
            logger.warning(f"[{self._name}] Ping failed: {e}")

    def terminate(self) -> None:
        """Cancel the receive task and report ``close`` right away."""
        if self._closed:
            return
        self._task.cancel()
        self._emit_close()


class AiohttpSocketFactory:
    """``SocketFactory`` producing ``AiohttpSocket`` handles."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        connect_timeout_s: float = 30.0,
    ) -> None:
        self._session = session
        self._connect_timeout_s = connect_timeout_s
        self._created = 0

    def __call__(self, url: str) -> AiohttpSocket:
        self._created += 1
        return AiohttpSocket(
            url,
            session=self._session,
            connect_timeout_s=self._connect_timeout_s,
            name=f"ws-{self._created}",
        )
