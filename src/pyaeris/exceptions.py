"""Custom exception hierarchy for pyaeris."""

from __future__ import annotations


class AerisError(Exception):
    """Base exception for all pyaeris errors."""


class AerisConfigError(AerisError):
    """Invalid or missing configuration."""


class AerisTransportError(AerisError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class AerisTimeoutError(AerisTransportError):
    """Request abandoned after the hard per-request timeout."""


class AerisRateLimitError(AerisTransportError):
    """Upstream answered with HTTP 429.

    The endpoint modules catch this and surface it as a ``rate_limited``
    flag on the result; rate limiting is a scheduler state, not a failure.
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        retry_after_seconds: int | None = None,
        credits_remaining: int | None = None,
    ) -> None:
        self.retry_after_seconds = retry_after_seconds
        self.credits_remaining = credits_remaining
        super().__init__(message, status_code=429, endpoint=endpoint)


class AerisEndpointNotSupportedError(AerisError):
    """The configured provider has no such endpoint."""
