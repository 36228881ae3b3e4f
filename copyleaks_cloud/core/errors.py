from __future__ import annotations

from typing import Any, Optional


class CopyleaksError(Exception):
    """
    Base exception for all client failures.
    """

    pass


class ConfigurationError(CopyleaksError):
    """
    Raised when client configuration is missing or invalid.
    """

    pass


class EncodingError(CopyleaksError):
    """
    Raised when request parameters cannot be serialized.

    A request that fails encoding is never sent.
    """

    pass


class Unauthenticated(CopyleaksError):
    """
    Raised when an authenticated endpoint is called without a usable token.
    """

    pass


class NetworkError(CopyleaksError):
    """
    Raised on transport-level failures (DNS, TLS, connection reset, timeout).
    """

    pass


class Cancelled(NetworkError):
    """
    Raised when a request is cancelled before its result is delivered.
    """

    pass


class DecodingError(CopyleaksError):
    """
    Raised when a response body is not the JSON the client expected.
    """

    pass


class ServerError(CopyleaksError):
    """
    Raised for non-2xx responses.

    `detail` carries the vendor error payload when one could be decoded,
    otherwise the raw body text.
    """

    def __init__(self, status: int, detail: Optional[Any] = None, message: Optional[str] = None):
        self.status = int(status)
        self.detail = detail
        super().__init__(message or f"server returned HTTP {self.status}")


class TokenStoreError(CopyleaksError):
    """
    Raised when the access-token record cannot be written.
    """

    pass
