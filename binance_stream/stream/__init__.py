"""Stream sessions: single, combined and user data."""

from binance_stream.stream.combined import CombinedStreamSession
from binance_stream.stream.session import StreamSession
from binance_stream.stream.types import SessionEvent, SessionState
from binance_stream.stream.user_data import UserDataStreamSession

__all__ = [
    "StreamSession",
    "CombinedStreamSession",
    "UserDataStreamSession",
    "SessionEvent",
    "SessionState",
]
