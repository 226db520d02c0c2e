"""
Binance Stream Sessions.

This package keeps Binance WebSocket streams alive indefinitely and provides
the REST control channel that issues and renews the listen keys of private
user data streams.

Components:
- StreamSession: Socket lifecycle, seamless restart, deferred close
- Heartbeat: Ping/pong liveness detection with a two-interval tolerance
- CombinedStreamSession: Many feeds multiplexed over one socket
- UserDataStreamSession: Listen key acquisition and renewal loop
- ControlChannel: Signed requests, clock drift estimation, skew retry

Usage:
    from binance_stream import ClientConfig, ControlChannel, UserDataStreamSession

    config = ClientConfig(key="...", secret="...", handle_drift=True)
    async with ControlChannel(config.control) as control:
        session = UserDataStreamSession(control, config.stream)
        session.on("executionReport", on_fill)
        await session.start()
"""

from binance_stream.config.configs import ClientConfig, ControlConfig, StreamConfig, Venue
from binance_stream.errors.errors import (
    AuthSignatureError,
    BinanceStreamError,
    ConfigurationError,
    ProtocolDecodeError,
    RateLimitOrServerError,
    RenewalFailure,
    RequestError,
    SubscriptionError,
    TimestampSkewError,
    TransportError,
)
from binance_stream.rest.control import ControlChannel, Security
from binance_stream.stream.combined import CombinedStreamSession
from binance_stream.stream.heartbeat import Heartbeat
from binance_stream.stream.session import StreamSession
from binance_stream.stream.types import SessionEvent, SessionState, SessionStats
from binance_stream.stream.user_data import UserDataStreamSession

__all__ = [
    # Sessions
    "StreamSession",
    "CombinedStreamSession",
    "UserDataStreamSession",
    "Heartbeat",
    # Control channel
    "ControlChannel",
    "Security",
    # Configuration
    "ClientConfig",
    "StreamConfig",
    "ControlConfig",
    "Venue",
    # Types
    "SessionState",
    "SessionEvent",
    "SessionStats",
    # Errors
    "BinanceStreamError",
    "ConfigurationError",
    "SubscriptionError",
    "TransportError",
    "ProtocolDecodeError",
    "RenewalFailure",
    "RequestError",
    "AuthSignatureError",
    "TimestampSkewError",
    "RateLimitOrServerError",
]
