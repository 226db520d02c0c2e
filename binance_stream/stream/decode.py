"""
Frame decoding for stream sessions.

Raw single stream format:
{
    "e": "kline",
    "s": "BTCUSDT",
    ...
}

Combined stream format:
{
    "stream": "btcusdt@kline_1m",
    "data": { ... kline data ... }
}

Array streams (``!ticker@arr``) deliver a JSON list of events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import orjson

from binance_stream.errors.errors import ProtocolDecodeError
from binance_stream.ports.beautifier import Beautifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DecodedFrame:
    """One inbound frame after decoding."""

    payload: Any  # decoded JSON, or the raw text when it was not JSON
    event_type: Optional[str]  # listener group, e.g. "kline"
    stream: Optional[str] = None  # combined stream name, e.g. "btcusdt@kline_1m"
    error: Optional[ProtocolDecodeError] = None  # set when the frame was not JSON

    @property
    def decoded(self) -> bool:
        return self.error is None


def decode_frame(raw: Union[str, bytes], beautifier: Optional[Beautifier] = None) -> DecodedFrame:
    """
    Decode a text frame and optionally beautify it.

    Frames that are not valid JSON are passed through untouched with
    ``decoded=False`` instead of raising.
    """
    try:
        event = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        error = ProtocolDecodeError(
            f"Frame is not valid JSON: {e}",
            raw_data=raw if isinstance(raw, str) else raw.decode("utf-8", "replace"),
            component="decode_frame",
        )
        return DecodedFrame(payload=raw, event_type=None, error=error)

    stream: Optional[str] = None
    if _is_combined(event):
        stream = event["stream"]
        if beautifier is not None:
            event["data"] = beautify_payload(event["data"], beautifier)
        event_type = event_type_of(event) or event_type_of(event["data"])
    else:
        if beautifier is not None:
            event = beautify_payload(event, beautifier)
        event_type = event_type_of(event)

    return DecodedFrame(payload=event, event_type=event_type, stream=stream)


def beautify_payload(data: Any, beautifier: Beautifier) -> Any:
    """Beautify an event or a list of events; anything without an ``e`` tag is left alone."""
    if isinstance(data, list):
        return [_beautify_event(item, beautifier) for item in data]
    return _beautify_event(data, beautifier)


def _beautify_event(data: Any, beautifier: Beautifier) -> Any:
    if isinstance(data, dict) and data.get("e"):
        return beautifier.beautify(data, f"{data['e']}Event")
    return data


def event_type_of(event: Any) -> Optional[str]:
    """Type tag of an event; beautified events carry it as ``eventType``."""
    if isinstance(event, dict):
        tag = event.get("eventType") or event.get("e")
        return str(tag) if tag else None
    if isinstance(event, list) and event:
        return event_type_of(event[0])
    return None


def _is_combined(event: Any) -> bool:
    return isinstance(event, dict) and "stream" in event and "data" in event
