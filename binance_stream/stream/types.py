"""
Shared types, enums, and data structures for stream sessions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class SessionState(str, Enum):
    """State machine for a single stream session."""

    CLOSED = "closed"
    PENDING = "pending"  # a socket is being opened; further restarts are ignored
    OPEN = "open"


class SessionEvent(str, Enum):
    """Lifecycle notifications and broadcast groups emitted by a session."""

    OPEN = "open"
    RESTART = "restart"
    CLOSE = "close"
    ALL = "all"  # every decoded message


# Listener key: a lifecycle event or an exchange event type tag ("kline", "outboundAccountPosition", ...)
EventKey = Union[SessionEvent, str]


@dataclass
class SessionStats:
    """Counters for one stream session, across every socket it has owned."""

    messages_received: int = 0
    decode_errors: int = 0
    pings_sent: int = 0
    pongs_received: int = 0
    opens: int = 0
    restarts: int = 0
    failed_restarts: int = 0
    transport_errors: int = 0
    dead_peers: int = 0

    # Timing
    opened_at: Optional[float] = None  # monotonic time
    last_message_at: Optional[float] = None  # monotonic time
    last_restart_at: Optional[float] = None  # monotonic time
