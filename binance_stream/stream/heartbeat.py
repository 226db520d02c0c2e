"""
Heartbeat liveness detector for stream sessions.

Every interval the detector checks whether the peer answered the previous
ping. If it did not, the connection is declared dead; otherwise the flag is
cleared and a new ping goes out. The flag starts out true, so a silent peer
is detected on the second tick: two intervals, not one. That slack absorbs
network jitter and callers rely on it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Heartbeat:
    """
    Ping/pong probe owned by one stream session.

    Usage:
        heartbeat = Heartbeat(
            interval_s=30.0,
            send_ping=lambda: socket.ping(),
            on_dead=session_close,
        )
        heartbeat.start()
        socket.on("pong", heartbeat.record_pong)
        # ... later ...
        heartbeat.cancel()
    """

    def __init__(
        self,
        interval_s: float,
        send_ping: Callable[[], None],
        on_dead: Callable[[], None],
        name: str = "heartbeat",
    ) -> None:
        self._interval_s = interval_s
        self._send_ping = send_ping
        self._on_dead = on_dead
        self._name = name

        self._alive = True
        self._task: Optional[asyncio.Task[None]] = None
        self._cancelled = False

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def alive(self) -> bool:
        """Whether the peer answered since the last ping."""
        return self._alive

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic check on the running event loop."""
        if self._task is not None:
            logger.warning(f"[{self._name}] Heartbeat already running")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"{self._name}_heartbeat"
        )

    def record_pong(self, *_: object) -> None:
        """Mark the peer alive; registered as the socket's ``pong`` listener."""
        self._alive = True

    def tick(self) -> bool:
        """
        Run one liveness round.

        Returns False once the peer has been declared dead.
        """
        if not self._alive:
            logger.warning(
                f"[{self._name}] No pong within {self._interval_s:.1f}s, closing connection"
            )
            self._on_dead()
            return False

        self._alive = False
        try:
            self._send_ping()
        except Exception as e:
            logger.warning(f"[{self._name}] Ping failed: {e}")
        return True

    async def _loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval_s)
                if not self.tick():
                    break
        except asyncio.CancelledError:
            logger.debug(f"[{self._name}] Heartbeat loop cancelled")

    def cancel(self) -> None:
        """Stop the periodic check. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            # on_dead runs inside the task; it must not cancel itself mid-tick
            if self._task is not asyncio.current_task():
                self._task.cancel()
        self._task = None
