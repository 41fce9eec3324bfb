"""
Error Taxonomy

Every failure the market-data pipeline can produce is one of three kinds:

    MarketDataError
    ├── UserError             bad pair or parameter, never retried
    ├── UpstreamDataError     envelope success != 1, missing or unparseable data
    └── TransportError        retried by the fetcher, then surfaced as is
        ├── RequestTimeoutError
        ├── HTTPStatusError
        └── ConnectionFailedError

Tool boundaries catch MarketDataError and turn it into a text explanation.
"""

from typing import Optional


class MarketDataError(Exception):
    """Base error for the market-data pipeline."""


class UserError(MarketDataError):
    """Malformed or unsupported user input (pair, limit, candle type, date)."""


class UpstreamDataError(MarketDataError):
    """The upstream answered, but without usable data."""

    def __init__(self, message: str, context: Optional[str] = None):
        self.context = context
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class TransportError(MarketDataError):
    """A transport-level failure for one request attempt."""


class RequestTimeoutError(TransportError):
    """The attempt did not complete within its timeout and was cancelled."""


class HTTPStatusError(TransportError):
    """The response status was outside the 2xx range."""

    def __init__(self, status: int, reason: str = "", url: str = ""):
        self.status = status
        self.reason = reason
        self.url = url
        super().__init__(f"HTTP {status} {reason}".strip())


class ConnectionFailedError(TransportError):
    """Connection, DNS or body-decoding failure; carries the original message."""
