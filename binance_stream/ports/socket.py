"""StreamSocket Port Interface.

Contract: A socket handle created by a ``SocketFactory`` for one URL. The
connection is established in the background; progress is reported through
synchronous event listeners:

- ``open``: the connection is live (no arguments)
- ``message``: one inbound text frame (``str``)
- ``pong``: the peer answered a ping (no arguments)
- ``close``: the connection is gone, whether it ever opened or not (no arguments)
- ``error``: a transport error (``Exception``); always followed by ``close``

``close`` fires at most once per handle. ``terminate()`` tears the connection
down immediately; listeners still attached at that point receive ``close``.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Protocol

SocketEventName = Literal["open", "message", "pong", "close", "error"]

SocketListener = Callable[..., Any]


class StreamSocket(Protocol):
    @property
    def url(self) -> str: ...

    def on(self, event: SocketEventName, listener: SocketListener) -> None:
        """Register a listener for a socket event."""
        ...

    def off(self, event: SocketEventName, listener: SocketListener) -> None:
        """Remove a previously registered listener (no-op if absent)."""
        ...

    def listeners(self, event: SocketEventName) -> list[SocketListener]:
        """Snapshot of listeners registered for ``event``, in order."""
        ...

    def event_names(self) -> list[SocketEventName]:
        """Events that currently have at least one listener."""
        ...

    def ping(self) -> None:
        """Send a ping control frame."""
        ...

    def terminate(self) -> None:
        """Drop the connection without a closing handshake."""
        ...


SocketFactory = Callable[[str], StreamSocket]
