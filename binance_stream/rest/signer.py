"""
Request signing for the control channel.

Signed endpoints take an HMAC-SHA256 of the exact query string, keyed with
the API secret, appended as the last ``signature`` parameter.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Mapping
from urllib.parse import urlencode


def canonical_query(params: Mapping[str, Any]) -> str:
    """
    URL-encode parameters in insertion order.

    ``None`` values are dropped and booleans are sent lower-case, as the
    exchange expects.
    """
    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((key, str(value)))
    return urlencode(pairs)


class Signer:
    """Deterministic keyed hash over canonical queries."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Signing secret must be a non-empty string")
        self._key = secret.encode("utf-8")

    def sign(self, query: str) -> str:
        """Hex-encoded HMAC-SHA256 of ``query``."""
        return hmac.new(self._key, query.encode("utf-8"), hashlib.sha256).hexdigest()

    def __repr__(self) -> str:
        return "Signer(secret=***)"
