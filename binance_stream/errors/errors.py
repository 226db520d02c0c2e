"""
Custom exceptions for the stream and control-channel layers.

Exception hierarchy:
- BinanceStreamError (base)
  - ConfigurationError: Invalid configuration
  - SubscriptionError: Subscription path changes that the endpoint cannot honour
  - TransportError: Socket or HTTP transport failures
  - ProtocolDecodeError: Malformed inbound frames
  - RenewalFailure: Listen key keep-alive failures inside the renewal loop
  - RequestError: Non-2xx responses from the REST control channel
    - AuthSignatureError: Rejected key or signature
    - TimestampSkewError: Timestamp outside the server's recvWindow
    - RateLimitOrServerError: Every other failed response
"""

from __future__ import annotations

from typing import Any, Optional


class BinanceStreamError(Exception):
    """Base exception for all stream and control-channel errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


class ConfigurationError(BinanceStreamError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, component=component, details=details)


class SubscriptionError(BinanceStreamError):
    """Raised when a subscription path is changed after the socket is bound to it."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.path = path
        details = details or {}
        if path:
            details["path"] = path
        super().__init__(message, component=component, details=details)


class TransportError(BinanceStreamError):
    """Raised when a socket or HTTP round trip fails below the protocol layer."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url
        details = details or {}
        if url:
            details["url"] = url
        super().__init__(message, component=component, details=details)


class ProtocolDecodeError(BinanceStreamError):
    """Raised when an inbound frame is not valid JSON."""

    def __init__(
        self,
        message: str,
        *,
        raw_data: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.raw_data = raw_data
        # Don't include raw_data in details to avoid log spam
        super().__init__(message, component=component, details=details)


class RenewalFailure(BinanceStreamError):
    """Raised inside the renewal loop when a listen key keep-alive fails."""

    def __init__(
        self,
        message: str,
        *,
        listen_key: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.listen_key = listen_key
        # The listen key grants access to private data, keep it out of details
        super().__init__(message, component=component, details=details)


class RequestError(BinanceStreamError):
    """Raised when the control channel answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        payload: Any = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.status = status
        self.payload = payload
        self.code: Optional[int] = None
        if isinstance(payload, dict) and isinstance(payload.get("code"), int):
            self.code = payload["code"]
        details = details or {}
        details["status"] = status
        if self.code is not None:
            details["code"] = self.code
        super().__init__(message, component=component, details=details)


class AuthSignatureError(RequestError):
    """API key or request signature rejected by the server."""


class TimestampSkewError(RequestError):
    """Request timestamp fell outside the server's acceptance window."""


class RateLimitOrServerError(RequestError):
    """Any other failed response: rate limits, bans, validation or server faults."""

    @property
    def is_rate_limited(self) -> bool:
        return self.status in (418, 429)
