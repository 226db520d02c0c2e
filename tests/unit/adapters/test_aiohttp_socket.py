"""
Unit tests for AiohttpSocket against a local aiohttp WebSocket server.
"""

import asyncio
from typing import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import WSMsgType, test_utils, web

from binance_stream.adapters.aiohttp_socket import AiohttpSocket, AiohttpSocketFactory
from binance_stream.errors.errors import TransportError


async def trade_feed(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse(autoping=True)
    await ws.prepare(request)
    await ws.send_str('{"e":"trade","t":1}')
    async for msg in ws:
        if msg.type == WSMsgType.TEXT and msg.data == "bye":
            await ws.close()
    return ws


@pytest_asyncio.fixture
async def ws_url() -> AsyncIterator[str]:
    app = web.Application()
    app.router.add_get("/ws/btcusdt@trade", trade_feed)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/ws/btcusdt@trade")).replace("http://", "ws://")
    finally:
        await server.close()


class Recorder:
    def __init__(self, sock: AiohttpSocket) -> None:
        self.events: list[str] = []
        self.messages: list[str] = []
        self.errors: list[Exception] = []
        self.opened = asyncio.Event()
        self.message = asyncio.Event()
        self.ponged = asyncio.Event()
        self.closed = asyncio.Event()
        sock.on("open", self._on_open)
        sock.on("message", self._on_message)
        sock.on("pong", self._on_pong)
        sock.on("error", self.errors.append)
        sock.on("close", self._on_close)

    def _on_open(self) -> None:
        self.events.append("open")
        self.opened.set()

    def _on_message(self, raw: str) -> None:
        self.messages.append(raw)
        self.message.set()

    def _on_pong(self) -> None:
        self.events.append("pong")
        self.ponged.set()

    def _on_close(self) -> None:
        self.events.append("close")
        self.closed.set()


class TestAiohttpSocket:
    """Test the socket event contract against a real server."""

    @pytest.mark.asyncio
    async def test_open_message_pong_and_terminate(self, ws_url: str) -> None:
        sock = AiohttpSocket(ws_url, name="test")
        recorder = Recorder(sock)

        await asyncio.wait_for(recorder.opened.wait(), 5)
        await asyncio.wait_for(recorder.message.wait(), 5)
        assert recorder.messages == ['{"e":"trade","t":1}']

        sock.ping()
        await asyncio.wait_for(recorder.ponged.wait(), 5)

        sock.terminate()
        sock.terminate()
        await asyncio.sleep(0.05)

        assert recorder.events == ["open", "pong", "close"]
        assert sock.closed

    @pytest.mark.asyncio
    async def test_connection_refused_reports_error_then_close(self) -> None:
        sock = AiohttpSocket("ws://127.0.0.1:1/ws/none", connect_timeout_s=2.0, name="test")
        recorder = Recorder(sock)

        await asyncio.wait_for(recorder.closed.wait(), 5)

        assert "open" not in recorder.events
        assert recorder.events == ["close"]
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], TransportError)

    @pytest.mark.asyncio
    async def test_factory_names_sockets(self, ws_url: str) -> None:
        factory = AiohttpSocketFactory()

        first = factory(ws_url)
        second = factory(ws_url)

        assert first.url == ws_url
        assert first._name == "ws-1"
        assert second._name == "ws-2"
        first.terminate()
        second.terminate()
        await asyncio.sleep(0.05)
