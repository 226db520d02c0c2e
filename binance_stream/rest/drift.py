"""
Clock drift estimation against the exchange's time endpoint.

The estimate assumes a symmetric round trip: the server read its clock half
way between our request and its response.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Local wall clock in Unix milliseconds."""
    return int(time.time() * 1000)


class DriftEstimator:
    """
    Holds the signed millisecond offset between the server clock and ours.

    ``stamp()`` is what signed requests use as their ``timestamp``.
    """

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._drift_ms = 0

    @property
    def drift_ms(self) -> int:
        return self._drift_ms

    def now(self) -> int:
        return self._clock()

    def stamp(self) -> int:
        """Local time corrected by the current drift estimate."""
        return self._clock() + self._drift_ms

    async def calculate(self, server_time: Callable[[], Awaitable[int]]) -> int:
        """
        Measure the drift with one round trip to the time authority.

        Args:
            server_time: Coroutine function returning the server clock in ms

        Returns:
            The new drift estimate in milliseconds
        """
        sent_at = self._clock()
        server_now = await server_time()
        transit_ms = (self._clock() - sent_at) // 2
        self._drift_ms = int(server_now) - (sent_at + transit_ms)
        logger.debug(f"Clock drift {self._drift_ms} ms (one-way transit ~{transit_ms} ms)")
        return self._drift_ms

    def reset(self) -> None:
        self._drift_ms = 0
