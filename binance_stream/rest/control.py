"""
REST control channel.

Handles the HTTP side of the client including:
- Unsigned, API-key and HMAC-signed requests
- Clock drift estimation with an optional periodic re-sync
- A single retry of signed requests rejected for timestamp skew
- Mapping of failed responses onto the error taxonomy
- Listen key issue, keep-alive and release for user data streams
"""

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import aiohttp
import orjson

from binance_stream.config.configs import ControlConfig
from binance_stream.errors.errors import (
    AuthSignatureError,
    ConfigurationError,
    RateLimitOrServerError,
    RequestError,
    TimestampSkewError,
    TransportError,
)
from binance_stream.ports.beautifier import Beautifier, IdentityBeautifier
from binance_stream.rest.drift import DriftEstimator, now_ms
from binance_stream.rest.signer import Signer, canonical_query

logger = logging.getLogger(__name__)

USER_DATA_STREAM_PATH = "/api/v3/userDataStream"
SERVER_TIME_PATH = "/api/v3/time"

# Binance error codes
TIMESTAMP_OUTSIDE_RECV_WINDOW = -1021
INVALID_SIGNATURE = -1022
BAD_API_KEY_FORMAT = -2014
REJECTED_MBX_KEY = -2015

_AUTH_CODES = frozenset({INVALID_SIGNATURE, BAD_API_KEY_FORMAT, REJECTED_MBX_KEY})
_ROUTE_TAIL = re.compile(r"^.*/([^/?]+)")

RecalculateCallback = Callable[["asyncio.Task[int]"], None]


class Security(str, Enum):
    """Authentication level of an endpoint."""

    NONE = "NONE"
    API_KEY = "API_KEY"  # key header only
    SIGNED = "SIGNED"  # key header, timestamp and signature


class ControlChannel:
    """
    HTTP client for the exchange's REST endpoints.

    Usage:
        async with ControlChannel(ControlConfig(key="...", secret="...", handle_drift=True)) as control:
            await control.start_time_sync()
            listen_key = await control.create_listen_key()
            order = await control.new_order(symbol="BTCUSDT", side="BUY", type="MARKET", quantity=1)
    """

    def __init__(
        self,
        config: Optional[ControlConfig] = None,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        beautifier: Optional[Beautifier] = None,
        clock: Callable[[], int] = now_ms,
        name: str = "control",
    ) -> None:
        self._config = config or ControlConfig()
        self._session = session
        self._owns_session = session is None
        self._name = name

        self._signer = Signer(self._config.secret) if self._config.secret else None
        self._drift = DriftEstimator(clock)
        self._beautifier: Optional[Beautifier] = None
        if self._config.beautify:
            self._beautifier = beautifier or IdentityBeautifier()

        self._sync_task: Optional[asyncio.Task[None]] = None

    async def __aenter__(self) -> ControlChannel:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def config(self) -> ControlConfig:
        return self._config

    @property
    def drift_ms(self) -> int:
        """Current clock drift estimate in milliseconds."""
        return self._drift.drift_ms

    @property
    def time_sync_running(self) -> bool:
        return self._sync_task is not None and not self._sync_task.done()

    async def close(self) -> None:
        """Stop the time sync and close the HTTP session if this channel owns it."""
        self.end_time_sync()
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # --- Signing and drift ---

    def sign(self, query: str) -> str:
        """HMAC-SHA256 signature of a canonical query string."""
        if self._signer is None:
            raise ConfigurationError(
                "A secret is required for signed requests",
                field="secret",
                component="ControlChannel",
            )
        return self._signer.sign(query)

    async def calculate_drift(self) -> int:
        """Re-estimate the clock drift against the server time endpoint."""
        drift_ms = await self._drift.calculate(self._server_time)
        logger.info(f"[{self._name}] Clock drift is now {drift_ms} ms")
        return drift_ms

    async def _server_time(self) -> int:
        payload = await self.request("GET", SERVER_TIME_PATH, beautify=False)
        server_time = payload.get("serverTime") if isinstance(payload, dict) else None
        if not isinstance(server_time, int):
            raise RateLimitOrServerError(
                "GET /api/v3/time returned no server time",
                status=200,
                payload=payload,
                component="ControlChannel",
            )
        return server_time

    async def start_time_sync(
        self,
        interval_s: float = 300.0,
        on_recalculate: Optional[RecalculateCallback] = None,
    ) -> int:
        """
        Calculate the drift now and again every ``interval_s`` seconds.

        A sync that is already running is replaced. ``on_recalculate``
        receives the task of each periodic recalculation.

        Returns:
            The initial drift estimate in milliseconds
        """
        if self._sync_task is not None:
            logger.debug(f"[{self._name}] Replacing running time sync")
            self._cancel_sync_task()
        self._sync_task = asyncio.get_running_loop().create_task(
            self._time_sync_loop(interval_s, on_recalculate), name=f"{self._name}_time_sync"
        )
        return await self.calculate_drift()

    def end_time_sync(self) -> None:
        """Stop the periodic sync and forget the drift estimate."""
        self._cancel_sync_task()
        self._drift.reset()

    def _cancel_sync_task(self) -> None:
        task, self._sync_task = self._sync_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _time_sync_loop(
        self, interval_s: float, on_recalculate: Optional[RecalculateCallback]
    ) -> None:
        try:
            while True:
                await asyncio.sleep(interval_s)
                task = asyncio.get_running_loop().create_task(self.calculate_drift())
                if on_recalculate is not None:
                    try:
                        on_recalculate(task)
                    except Exception as e:
                        logger.warning(f"[{self._name}] Time sync callback failed: {e}")
                try:
                    await task
                except (RequestError, TransportError) as e:
                    logger.warning(f"[{self._name}] Drift recalculation failed: {e}")
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Time sync cancelled")

    # --- Requests ---

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        security: Security = Security.NONE,
        *,
        beautify: Optional[bool] = None,
        attempt: int = 0,
    ) -> Any:
        """
        Send one request and return the decoded payload.

        Raises:
            AuthSignatureError: Key or signature rejected
            TimestampSkewError: Timestamp outside recvWindow (after the retry, if enabled)
            RateLimitOrServerError: Any other non-2xx response
            TransportError: The round trip itself failed
        """
        query = dict(params or {})
        headers: dict[str, str] = {}

        if security != Security.NONE:
            if not self._config.key:
                raise ConfigurationError(
                    f"An API key is required for {method} {path}",
                    field="key",
                    component="ControlChannel",
                )
            headers["X-MBX-APIKEY"] = self._config.key

        if security == Security.SIGNED:
            if not query.get("timestamp"):
                query["timestamp"] = self._drift.stamp()
            if self._config.recv_window_ms is not None and "recvWindow" not in query:
                query["recvWindow"] = self._config.recv_window_ms
            query_string = canonical_query(query)
            query_string = f"{query_string}&signature={self.sign(query_string)}"
        else:
            query_string = canonical_query(query)

        url = f"{self._config.base_url.rstrip('/')}{path}"
        if query_string:
            url = f"{url}?{query_string}"

        logger.debug(f"[{self._name}] {method} {path}")
        status, payload = await self._send(method, url, headers)

        if 200 <= status < 300:
            if beautify is False or self._beautifier is None:
                return payload
            return self._beautify(self._beautifier, payload, path)

        error = self._error_for(method, path, status, payload)
        if (
            isinstance(error, TimestampSkewError)
            and security == Security.SIGNED
            and self._config.handle_drift
            and attempt == 0
        ):
            logger.warning(f"[{self._name}] {method} {path} rejected for timestamp skew, resyncing clock")
            await self.calculate_drift()
            retry_params = dict(params or {})
            retry_params["timestamp"] = self._drift.stamp()
            return await self.request(
                method, path, retry_params, security, beautify=beautify, attempt=attempt + 1
            )
        raise error

    async def _send(self, method: str, url: str, headers: Mapping[str, str]) -> tuple[int, Any]:
        """Perform the HTTP round trip; returns status and JSON (or raw text) body."""
        session = self._get_session()
        try:
            async with session.request(
                method,
                url,
                headers=dict(headers),
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_s),
            ) as response:
                status = response.status
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"{method} request failed: {str(e) or type(e).__name__}",
                url=url.split("?", 1)[0],
                component="ControlChannel",
            ) from e
        return status, _parse_body(body)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _beautify(self, beautifier: Beautifier, payload: Any, path: str) -> Any:
        match = _ROUTE_TAIL.match(path)
        route_type = match.group(1) if match else path
        if isinstance(payload, list):
            return [beautifier.beautify(item, route_type) for item in payload]
        return beautifier.beautify(payload, route_type)

    def _error_for(self, method: str, path: str, status: int, payload: Any) -> RequestError:
        code = payload.get("code") if isinstance(payload, dict) else None
        reason = payload.get("msg") if isinstance(payload, dict) else None
        message = f"{method} {path} failed with status {status}"
        if reason:
            message = f"{message}: {reason}"

        if code == TIMESTAMP_OUTSIDE_RECV_WINDOW:
            error_cls: type[RequestError] = TimestampSkewError
        elif status == 401 or code in _AUTH_CODES:
            error_cls = AuthSignatureError
        else:
            error_cls = RateLimitOrServerError
        return error_cls(message, status=status, payload=payload, component="ControlChannel")

    # --- Listen keys ---

    async def create_listen_key(self) -> str:
        """Issue a listen key for the user data stream."""
        payload = await self.request("POST", USER_DATA_STREAM_PATH, security=Security.API_KEY, beautify=False)
        return str(payload["listenKey"])

    async def keep_alive_listen_key(self, listen_key: str) -> None:
        """Extend a listen key's lifetime by another 60 minutes."""
        await self.request(
            "PUT",
            USER_DATA_STREAM_PATH,
            {"listenKey": listen_key},
            Security.API_KEY,
            beautify=False,
        )

    async def close_listen_key(self, listen_key: str) -> None:
        """Invalidate a listen key; its stream is closed by the server."""
        await self.request(
            "DELETE",
            USER_DATA_STREAM_PATH,
            {"listenKey": listen_key},
            Security.API_KEY,
            beautify=False,
        )

    # --- Endpoint wrappers ---

    async def ping(self) -> Any:
        return await self.request("GET", "/api/v3/ping")

    async def time(self) -> Any:
        return await self.request("GET", SERVER_TIME_PATH)

    async def exchange_info(self, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/exchangeInfo", params)

    async def depth(self, symbol: str, limit: Optional[int] = None) -> Any:
        return await self.request("GET", "/api/v3/depth", {"symbol": symbol, "limit": limit})

    async def trades(self, symbol: str, limit: Optional[int] = None) -> Any:
        return await self.request("GET", "/api/v3/trades", {"symbol": symbol, "limit": limit})

    async def historical_trades(self, symbol: str, **params: Any) -> Any:
        return await self.request(
            "GET", "/api/v3/historicalTrades", {"symbol": symbol, **params}, Security.API_KEY
        )

    async def agg_trades(self, symbol: str, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/aggTrades", {"symbol": symbol, **params})

    async def klines(self, symbol: str, interval: str, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/klines", {"symbol": symbol, "interval": interval, **params})

    async def ticker_price(self, symbol: Optional[str] = None) -> Any:
        return await self.request("GET", "/api/v3/ticker/price", {"symbol": symbol})

    async def ticker_24hr(self, symbol: Optional[str] = None) -> Any:
        return await self.request("GET", "/api/v3/ticker/24hr", {"symbol": symbol})

    async def book_ticker(self, symbol: Optional[str] = None) -> Any:
        return await self.request("GET", "/api/v3/ticker/bookTicker", {"symbol": symbol})

    async def account(self, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/account", params, Security.SIGNED)

    async def new_order(self, **params: Any) -> Any:
        return await self.request("POST", "/api/v3/order", params, Security.SIGNED)

    async def test_order(self, **params: Any) -> Any:
        return await self.request("POST", "/api/v3/order/test", params, Security.SIGNED)

    async def query_order(self, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/order", params, Security.SIGNED)

    async def cancel_order(self, **params: Any) -> Any:
        return await self.request("DELETE", "/api/v3/order", params, Security.SIGNED)

    async def open_orders(self, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/openOrders", params, Security.SIGNED)

    async def all_orders(self, symbol: str, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/allOrders", {"symbol": symbol, **params}, Security.SIGNED)

    async def my_trades(self, **params: Any) -> Any:
        return await self.request("GET", "/api/v3/myTrades", params, Security.SIGNED)


def _parse_body(body: str) -> Any:
    if not body:
        return {}
    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError:
        return body
