"""
Combined stream session.

Multiplexes many feeds over one socket by joining their identifiers with
``/`` and connecting to the combined-stream endpoint. Every frame arrives
wrapped as ``{"stream": <name>, "data": <event>}``; listeners keyed by event
type still receive it, as the type tag is read from the inner event.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Union

from binance_stream.config.configs import StreamConfig
from binance_stream.ports.beautifier import Beautifier
from binance_stream.ports.socket import SocketFactory
from binance_stream.stream import names
from binance_stream.stream.session import StreamSession

logger = logging.getLogger(__name__)


class CombinedStreamSession(StreamSession):
    """
    Stream session carrying several feeds.

    Feeds can be appended only while the session is CLOSED: the endpoint
    binds to the path at connect time, so appending afterwards raises
    ``SubscriptionError``.

    Usage:
        session = CombinedStreamSession()
        session.add_kline("BTCUSDT", "1m")
        session.add_depth_level("ETHUSDT", 5)
        session.on("kline", on_kline)
        await session.start()
    """

    def __init__(
        self,
        paths: Union[str, Sequence[str], None] = None,
        config: Optional[StreamConfig] = None,
        *,
        socket_factory: Optional[SocketFactory] = None,
        beautifier: Optional[Beautifier] = None,
        name: str = "combined_stream",
    ) -> None:
        if paths is None:
            feeds: list[str] = []
        elif isinstance(paths, str):
            feeds = [paths]
        else:
            feeds = list(paths)
        super().__init__(
            feeds,
            config,
            socket_factory=socket_factory,
            beautifier=beautifier,
            name=name,
        )

    @property
    def paths(self) -> list[str]:
        """Feed identifiers in subscription order (a copy)."""
        if isinstance(self._path, list):
            return list(self._path)
        return [self._path] if self._path else []

    def _url_prefix(self) -> str:
        return self._config.combined_stream_url

    async def restart(self, interval_s: Optional[float] = None) -> None:
        if self.is_closed and not self.paths:
            logger.warning(f"[{self._name}] Starting combined stream without any feeds")
        await super().restart(interval_s)

    def add_path(self, path: str) -> None:
        """Append one feed identifier."""
        self._ensure_path_mutable()
        feeds = self.paths
        feeds.append(path)
        self._path = feeds

    def add_depth(self, symbol: str) -> None:
        self.add_path(names.depth(symbol))

    def add_depth_level(self, symbol: str, level: int) -> None:
        self.add_path(names.depth_level(symbol, level))

    def add_kline(self, symbol: str, interval: str) -> None:
        self.add_path(names.kline(symbol, interval))

    def add_agg_trade(self, symbol: str) -> None:
        self.add_path(names.agg_trade(symbol))

    def add_trade(self, symbol: str) -> None:
        self.add_path(names.trade(symbol))

    def add_ticker(self, symbol: str) -> None:
        self.add_path(names.ticker(symbol))

    def add_book_ticker(self, symbol: str) -> None:
        self.add_path(names.book_ticker(symbol))

    def add_all_tickers(self) -> None:
        self.add_path(names.all_tickers())
