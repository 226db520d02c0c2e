from __future__ import annotations

import logging
import os
from typing import Mapping

from binance_stream.ports.secrets_provider import SecretsProvider

_LOGGER = logging.getLogger(__name__)

DEFAULT_PREFIX = "BINANCE_"


class MissingSecretError(ValueError):
    """
    Raised when a logical secret name is unknown or its variable is unset.
    """

    def __init__(self, secret_name: str, env_var: str | None = None) -> None:
        super().__init__(secret_name)
        self.secret_name = secret_name
        self.env_var = env_var

    def __str__(self) -> str:
        if self.env_var:
            return f"Secret '{self.secret_name}' is unavailable (set {self.env_var})"
        return f"Secret '{self.secret_name}' is unavailable"


class EnvSecretsProvider(SecretsProvider):
    """
    Resolve API credentials from environment variables.

    With the default prefix ``exchange_api_key`` reads ``BINANCE_API_KEY``
    and ``exchange_api_secret`` reads ``BINANCE_API_SECRET``.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        allowed: dict[str, str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        if not prefix:
            raise ValueError("Environment prefix must be a non-empty string")
        self._prefix = prefix
        # logical name -> variable suffix
        names: dict[str, str] = {
            "exchange_api_key": "API_KEY",
            "exchange_api_secret": "API_SECRET",
        }
        if allowed:
            names.update(allowed)
        self._allowed = names
        self._environ = environ if environ is not None else os.environ

    def env_var(self, secret_name: str) -> str:
        """Environment variable backing a logical secret name."""
        if secret_name not in self._allowed:
            raise MissingSecretError(secret_name)
        return f"{self._prefix}{self._allowed[secret_name]}"

    def get(self, secret_name: str) -> str:
        """Resolve a logical secret name to the value of its environment variable."""
        env_var = self.env_var(secret_name)
        value = self._environ.get(env_var)
        if not value:
            _LOGGER.debug(
                "secret_missing",
                extra={"event": "secret_missing", "secret_name": secret_name, "env_var": env_var},
            )
            raise MissingSecretError(secret_name, env_var)

        _LOGGER.debug(
            "secret_resolved",
            extra={"event": "secret_resolved", "secret_name": secret_name, "source": "env"},
        )
        return value
