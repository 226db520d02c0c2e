"""Beautifier Port Interface.

Contract: Rename terse exchange fields to readable ones. Pure function, no
side effects. Called once per decoded stream event with ``"<e>Event"`` as the
type name, and once per REST payload (or array element) with the route tail.
"""

from __future__ import annotations

from typing import Any, Protocol


class Beautifier(Protocol):
    def beautify(self, raw: Any, event_type_name: str) -> Any:
        """Return the normalized form of ``raw``."""
        ...


class IdentityBeautifier:
    """Default beautifier: hands payloads back untouched."""

    def beautify(self, raw: Any, event_type_name: str) -> Any:
        return raw
