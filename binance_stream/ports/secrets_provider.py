"""SecretsProvider Port Interface.

Contract: Resolve API credentials by logical name (``exchange_api_key``,
``exchange_api_secret``). Raises when a name is unknown or unset; never
logs or caches the value.
"""

from __future__ import annotations

from typing import Protocol


class SecretsProvider(Protocol):
    def get(self, secret_name: str) -> str:
        """Return the secret registered under ``secret_name``."""
        ...
