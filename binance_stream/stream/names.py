"""
Feed identifier builders.

Identifiers are the lower-cased symbol plus a stream-type suffix, e.g.
``btcusdt@kline_1m``. They are used as single-stream paths or joined with
``/`` for combined streams.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class StreamType(str, Enum):
    """Available stream types."""

    DEPTH = "depth"
    KLINE = "kline"
    AGG_TRADE = "aggTrade"
    TRADE = "trade"
    TICKER = "ticker"
    BOOK_TICKER = "bookTicker"


def depth(symbol: str) -> str:
    return f"{symbol.lower()}@depth"


def depth_level(symbol: str, level: int) -> str:
    return f"{symbol.lower()}@depth{level}"


def kline(symbol: str, interval: str) -> str:
    return f"{symbol.lower()}@kline_{interval}"


def agg_trade(symbol: str) -> str:
    return f"{symbol.lower()}@aggTrade"


def trade(symbol: str) -> str:
    return f"{symbol.lower()}@trade"


def ticker(symbol: str) -> str:
    return f"{symbol.lower()}@ticker"


def book_ticker(symbol: str) -> str:
    return f"{symbol.lower()}@bookTicker"


def all_tickers() -> str:
    return "!ticker@arr"


def stream_name(symbol: str, stream_type: StreamType, interval: Optional[str] = None) -> str:
    """Generate a stream name from a symbol and a stream type."""
    if stream_type == StreamType.KLINE:
        if not interval:
            raise ValueError("interval required for kline streams")
        return kline(symbol, interval)
    return f"{symbol.lower()}@{stream_type.value}"
