"""
Unit tests for CombinedStreamSession.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest

from binance_stream.config.configs import StreamConfig
from binance_stream.errors.errors import SubscriptionError
from binance_stream.stream import names
from binance_stream.stream.combined import CombinedStreamSession
from binance_stream.stream.types import SessionEvent
from fakes import FakeSocketFactory


class TestPaths:
    """Test feed list handling and URL construction."""

    def test_url_joins_feeds(self, stream_config: StreamConfig) -> None:
        session = CombinedStreamSession(["btcusdt@kline_1m", "ethusdt@depth5"], stream_config)

        assert session.url == "wss://stream.test/stream?streams=btcusdt@kline_1m/ethusdt@depth5"

    def test_single_string_path(self, stream_config: StreamConfig) -> None:
        session = CombinedStreamSession("btcusdt@trade", stream_config)

        assert session.paths == ["btcusdt@trade"]

    def test_builders_append_in_order(self, stream_config: StreamConfig) -> None:
        session = CombinedStreamSession(config=stream_config)

        session.add_kline("BTCUSDT", "1m")
        session.add_depth_level("ETHUSDT", 5)
        session.add_agg_trade("BNBUSDT")
        session.add_book_ticker("BTCUSDT")
        session.add_all_tickers()

        assert session.paths == [
            "btcusdt@kline_1m",
            "ethusdt@depth5",
            "bnbusdt@aggTrade",
            "btcusdt@bookTicker",
            "!ticker@arr",
        ]

    def test_paths_returns_copy(self, stream_config: StreamConfig) -> None:
        session = CombinedStreamSession(["btcusdt@trade"], stream_config)

        session.paths.append("ethusdt@trade")

        assert session.paths == ["btcusdt@trade"]

    @pytest.mark.asyncio
    async def test_add_after_start_raises(
        self, stream_config: StreamConfig, socket_factory: FakeSocketFactory
    ) -> None:
        session = CombinedStreamSession(["btcusdt@trade"], stream_config, socket_factory=socket_factory)
        await session.start()

        with pytest.raises(SubscriptionError):
            session.add_trade("ETHUSDT")

        socket_factory.last.open()
        with pytest.raises(SubscriptionError):
            session.add_path("ethusdt@trade")

        assert session.paths == ["btcusdt@trade"]
        await session.close()

    @pytest.mark.asyncio
    async def test_add_allowed_again_after_close(
        self, stream_config: StreamConfig, socket_factory: FakeSocketFactory
    ) -> None:
        session = CombinedStreamSession(["btcusdt@trade"], stream_config, socket_factory=socket_factory)
        await session.start()
        socket_factory.last.open()
        await session.close()

        session.add_trade("ETHUSDT")
        await session.start()

        assert socket_factory.last.url.endswith("streams=btcusdt@trade/ethusdt@trade")
        await session.close()


class TestRouting:
    """Test delivery of wrapped combined frames."""

    @pytest.mark.asyncio
    async def test_wrapped_frame_routed_by_inner_type(
        self, stream_config: StreamConfig, socket_factory: FakeSocketFactory
    ) -> None:
        session = CombinedStreamSession(["btcusdt@kline_1m"], stream_config, socket_factory=socket_factory)
        on_kline = MagicMock()
        on_all = MagicMock()
        session.on("kline", on_kline)
        session.on(SessionEvent.ALL, on_all)
        await session.start()
        socket_factory.last.open()

        frame = {"stream": "btcusdt@kline_1m", "data": {"e": "kline", "s": "BTCUSDT"}}
        socket_factory.last.receive(frame)

        on_kline.assert_called_once_with(frame)
        on_all.assert_called_once_with(frame)
        await session.close()

    @pytest.mark.asyncio
    async def test_beautifier_applied_to_inner_event(self, socket_factory: FakeSocketFactory) -> None:
        class Renamer:
            def __init__(self) -> None:
                self.calls: list[str] = []

            def beautify(self, raw: Any, event_type_name: str) -> Any:
                self.calls.append(event_type_name)
                return {"eventType": raw["e"], "symbol": raw["s"]}

        renamer = Renamer()
        config = StreamConfig(ws_base_url="wss://stream.test", beautify=True)
        session = CombinedStreamSession(
            [names.kline("BTCUSDT", "1m")], config, socket_factory=socket_factory, beautifier=renamer
        )
        on_kline = MagicMock()
        session.on("kline", on_kline)
        await session.start()
        socket_factory.last.open()

        socket_factory.last.receive({"stream": "btcusdt@kline_1m", "data": {"e": "kline", "s": "BTCUSDT"}})

        assert renamer.calls == ["klineEvent"]
        on_kline.assert_called_once_with(
            {"stream": "btcusdt@kline_1m", "data": {"eventType": "kline", "symbol": "BTCUSDT"}}
        )
        await session.close()


class TestStreamNames:
    """Test feed identifier builders."""

    def test_stream_name_for_kline(self) -> None:
        assert names.stream_name("BTCUSDT", names.StreamType.KLINE, "5m") == "btcusdt@kline_5m"

    def test_stream_name_kline_requires_interval(self) -> None:
        with pytest.raises(ValueError):
            names.stream_name("BTCUSDT", names.StreamType.KLINE)

    def test_stream_name_for_book_ticker(self) -> None:
        assert names.stream_name("ETHUSDT", names.StreamType.BOOK_TICKER) == "ethusdt@bookTicker"
