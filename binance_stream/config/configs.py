"""
Configuration types for the stream sessions and the REST control channel.

Provides immutable, validated configuration dataclasses. Every component
receives its configuration at construction; there are no shared class-level
defaults to mutate.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from binance_stream.errors.errors import ConfigurationError
from binance_stream.ports.secrets_provider import SecretsProvider


class Venue(str, Enum):
    """Supported endpoints."""

    BINANCE_SPOT = "binance_spot"
    BINANCE_SPOT_TESTNET = "binance_spot_testnet"


# Binance WebSocket endpoints
BINANCE_WS_ENDPOINTS: dict[Venue, str] = {
    Venue.BINANCE_SPOT: "wss://stream.binance.com:9443",
    Venue.BINANCE_SPOT_TESTNET: "wss://testnet.binance.vision",
}

# Binance REST endpoints (control channel)
BINANCE_REST_ENDPOINTS: dict[Venue, str] = {
    Venue.BINANCE_SPOT: "https://api.binance.com",
    Venue.BINANCE_SPOT_TESTNET: "https://testnet.binance.vision",
}

# Binance closes listen keys that have not been kept alive for 60 minutes
LISTEN_KEY_TTL_S = 60 * 60


@dataclass(frozen=True)
class StreamConfig:
    """Configuration shared by every stream session."""

    ws_base_url: str = BINANCE_WS_ENDPOINTS[Venue.BINANCE_SPOT]

    # Decoding
    beautify: bool = True

    # Liveness
    heartbeat_interval_s: float = 30.0

    # Listen key maintenance (user data streams only)
    renewal_interval_s: float = 30 * 60.0
    renewal_retry_backoff_s: float = 60.0

    def __post_init__(self) -> None:
        if not self.ws_base_url:
            raise ConfigurationError("ws_base_url must not be empty", field="ws_base_url")
        if self.heartbeat_interval_s <= 0:
            raise ConfigurationError(
                "heartbeat_interval_s must be positive",
                field="heartbeat_interval_s",
                value=self.heartbeat_interval_s,
            )
        if self.renewal_interval_s <= 0:
            raise ConfigurationError(
                "renewal_interval_s must be positive",
                field="renewal_interval_s",
                value=self.renewal_interval_s,
            )
        if self.renewal_interval_s >= LISTEN_KEY_TTL_S:
            raise ConfigurationError(
                "renewal_interval_s must be shorter than the listen key lifetime",
                field="renewal_interval_s",
                value=self.renewal_interval_s,
            )
        if self.renewal_retry_backoff_s <= 0:
            raise ConfigurationError(
                "renewal_retry_backoff_s must be positive",
                field="renewal_retry_backoff_s",
                value=self.renewal_retry_backoff_s,
            )

    @property
    def single_stream_url(self) -> str:
        """Prefix for raw single-feed streams."""
        return f"{self.ws_base_url.rstrip('/')}/ws/"

    @property
    def combined_stream_url(self) -> str:
        """Prefix for combined (multiplexed) streams."""
        return f"{self.ws_base_url.rstrip('/')}/stream?streams="


@dataclass(frozen=True)
class ControlConfig:
    """Configuration for the signed REST control channel."""

    key: Optional[str] = None
    secret: Optional[str] = None
    base_url: str = BINANCE_REST_ENDPOINTS[Venue.BINANCE_SPOT]

    beautify: bool = True
    handle_drift: bool = False
    recv_window_ms: Optional[int] = None  # None leaves the server default (5000 ms)
    timeout_s: float = 15.0

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigurationError("base_url must not be empty", field="base_url")
        if self.timeout_s <= 0:
            raise ConfigurationError(
                "timeout_s must be positive",
                field="timeout_s",
                value=self.timeout_s,
            )
        if self.recv_window_ms is not None and not (0 < self.recv_window_ms <= 60_000):
            raise ConfigurationError(
                "recv_window_ms must be between 1 and 60000",
                field="recv_window_ms",
                value=self.recv_window_ms,
            )

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks
        return (
            f"ControlConfig(key={'***' if self.key else None}, "
            f"secret={'***' if self.secret else None}, base_url={self.base_url!r}, "
            f"beautify={self.beautify}, handle_drift={self.handle_drift}, "
            f"recv_window_ms={self.recv_window_ms}, timeout_s={self.timeout_s})"
        )


@dataclass(frozen=True)
class ClientConfig:
    """
    Immutable top-level configuration covering both sides of the client.

    Example:
        config = ClientConfig(
            key="...",
            secret="...",
            handle_drift=True,
            heartbeat_interval_s=15.0,
        )
        control = ControlChannel(config.control)
        stream = UserDataStreamSession(control, config.stream)
    """

    key: Optional[str] = None
    secret: Optional[str] = None
    venue: Venue = Venue.BINANCE_SPOT

    beautify: bool = True
    handle_drift: bool = False
    recv_window_ms: Optional[int] = None
    timeout_s: float = 15.0

    heartbeat_interval_s: float = 30.0
    renewal_interval_s: float = 30 * 60.0
    renewal_retry_backoff_s: float = 60.0

    # Explicit URLs override the venue defaults
    base_url: Optional[str] = None
    ws_base_url: Optional[str] = None

    @property
    def control(self) -> ControlConfig:
        """Control channel view of this configuration."""
        return ControlConfig(
            key=self.key,
            secret=self.secret,
            base_url=self.base_url or BINANCE_REST_ENDPOINTS[self.venue],
            beautify=self.beautify,
            handle_drift=self.handle_drift,
            recv_window_ms=self.recv_window_ms,
            timeout_s=self.timeout_s,
        )

    @property
    def stream(self) -> StreamConfig:
        """Stream session view of this configuration."""
        return StreamConfig(
            ws_base_url=self.ws_base_url or BINANCE_WS_ENDPOINTS[self.venue],
            beautify=self.beautify,
            heartbeat_interval_s=self.heartbeat_interval_s,
            renewal_interval_s=self.renewal_interval_s,
            renewal_retry_backoff_s=self.renewal_retry_backoff_s,
        )

    def __post_init__(self) -> None:
        # Building both views runs their validation
        _ = (self.control, self.stream)

    @classmethod
    def from_secrets(cls, provider: SecretsProvider, **overrides: Any) -> ClientConfig:
        """Resolve key and secret through a secrets provider."""
        config = cls(
            key=provider.get("exchange_api_key"),
            secret=provider.get("exchange_api_secret"),
        )
        return replace(config, **overrides)

    def __repr__(self) -> str:
        return (
            f"ClientConfig(key={'***' if self.key else None}, "
            f"secret={'***' if self.secret else None}, venue={self.venue.value})"
        )
