"""
Listener registries for sockets and stream sessions.

A ``ListenerRegistry`` maps an event key to an ordered list of synchronous
handlers. Handlers run in registration order; an exception in one handler is
logged and does not stop delivery to the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)

Handler = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class _Entry:
    handler: Handler
    once: bool = False


class ListenerRegistry(Generic[K]):
    """Explicit observer registry keyed by event."""

    def __init__(self, name: str = "registry") -> None:
        self._name = name
        self._entries: dict[K, list[_Entry]] = {}

    def add(self, key: K, handler: Handler, *, once: bool = False) -> None:
        """
        Register a handler for ``key``.

        Multiple handlers can be registered for the same key.
        They will be called in registration order.
        """
        if key not in self._entries:
            self._entries[key] = []
        self._entries[key].append(_Entry(handler, once))

    def remove(self, key: K, handler: Handler) -> None:
        """Remove the first registration of ``handler`` under ``key``."""
        entries = self._entries.get(key)
        if not entries:
            return
        for i, entry in enumerate(entries):
            if entry.handler == handler:
                del entries[i]
                break
        if not entries:
            del self._entries[key]

    def clear(self, key: K | None = None) -> None:
        """Drop every handler, or only those under ``key``."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def handlers(self, key: K) -> list[Handler]:
        return [entry.handler for entry in self._entries.get(key, [])]

    def keys(self) -> list[K]:
        return list(self._entries)

    def count(self, key: K) -> int:
        return len(self._entries.get(key, []))

    def emit(self, key: K, *args: Any) -> int:
        """
        Call every handler registered for ``key``.

        Returns the number of handlers invoked.
        """
        entries = self._entries.get(key)
        if not entries:
            return 0

        snapshot = list(entries)
        for entry in snapshot:
            if entry.once:
                self.remove(key, entry.handler)

        for entry in snapshot:
            try:
                entry.handler(*args)
            except Exception as e:
                logger.error(f"[{self._name}] Listener error for {key!r}: {e}", exc_info=True)
        return len(snapshot)


class SocketEmitter:
    """
    Listener plumbing shared by ``StreamSocket`` implementations.

    Subclasses call ``_emit`` from their transport code and implement
    ``ping`` / ``terminate``.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._listeners: ListenerRegistry[str] = ListenerRegistry(name=f"socket {url}")

    @property
    def url(self) -> str:
        return self._url

    def on(self, event: str, listener: Handler) -> None:
        self._listeners.add(event, listener)

    def off(self, event: str, listener: Handler) -> None:
        self._listeners.remove(event, listener)

    def listeners(self, event: str) -> list[Handler]:
        return self._listeners.handlers(event)

    def event_names(self) -> list[str]:
        return self._listeners.keys()

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def _emit(self, event: str, *args: Any) -> int:
        return self._listeners.emit(event, *args)
