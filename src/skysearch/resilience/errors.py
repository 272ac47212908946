"""Failure taxonomy and normalisation of raw transport errors.

Different client libraries raise differently shaped errors. Everything is
normalised into a ``FailureInfo`` here, so the classifier only ever sees one
shape.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum

import httpx

from skysearch.exceptions import RequestCancelledError, RequestTimeoutError, TransportError


class ErrorKind(str, Enum):
    """Classification tag of a failed attempt."""

    CLIENT_ERROR = "client_error"  # 400, 401, 403, 404 - never retried
    CLIENT_ERROR_RETRYABLE = "client_error_retryable"  # other 4xx
    SERVER_ERROR = "server_error"  # 5xx
    RATE_LIMITED = "rate_limited"  # 429, may carry a Retry-After hint
    NETWORK_ERROR = "network_error"  # no response received
    TIMEOUT = "timeout"  # explicit deadline exceeded
    CANCELLED = "cancelled"  # aborted by the caller
    UNKNOWN = "unknown"


# Transport codes that mean "the connection went away", mirroring the codes
# emitted by browser and node HTTP clients.
CONNECTION_ABORT_CODES = frozenset({
    "ECONNABORTED",
    "ECONNREFUSED",
    "ECONNRESET",
    "ENETUNREACH",
    "EHOSTUNREACH",
    "EPIPE",
    "ETIMEDOUT",
})


@dataclass(frozen=True)
class FailureInfo:
    """Normalised view of a failed backend call.

    Attributes:
        message: Human-readable description of the failure.
        status_code: HTTP status, if a response was received.
        code: Transport error code, if any.
        retry_after_ms: Server-provided Retry-After hint in milliseconds.
        from_transport: Whether the failure came from the network layer.
        timed_out: Whether an explicit deadline caused the failure.
        cancelled: Whether the caller aborted the call.
        error: The original exception.
    """

    message: str
    status_code: int | None = None
    code: str | None = None
    retry_after_ms: float | None = None
    from_transport: bool = False
    timed_out: bool = False
    cancelled: bool = False
    error: BaseException | None = None


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header value into milliseconds.

    Accepts both forms allowed by RFC 9110: delay-seconds and an HTTP date.

    Args:
        value: Raw header value.
        now: Reference time for HTTP dates (defaults to the current UTC time).

    Returns:
        Delay in milliseconds, or None if the value is missing or malformed.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        seconds = (when - now).total_seconds()

    return max(seconds, 0.0) * 1000


def _retry_after_from(headers: Mapping[str, str] | httpx.Headers | None) -> float | None:
    if not headers:
        return None
    if isinstance(headers, httpx.Headers):
        return parse_retry_after(headers.get("retry-after"))
    for key, value in headers.items():
        if key.lower() == "retry-after":
            return parse_retry_after(value)
    return None


def normalize_failure(error: BaseException) -> FailureInfo:
    """Normalise any raised exception into a ``FailureInfo``.

    Args:
        error: The exception raised by an attempt.

    Returns:
        FailureInfo describing the failure.
    """
    message = str(error) or type(error).__name__

    if isinstance(error, RequestCancelledError):
        return FailureInfo(message=message, code=error.code, cancelled=True, from_transport=True, error=error)

    if isinstance(error, RequestTimeoutError):
        return FailureInfo(message=message, code=error.code, timed_out=True, from_transport=True, error=error)

    if isinstance(error, TransportError):
        return FailureInfo(
            message=message,
            status_code=error.status_code,
            code=error.code,
            retry_after_ms=_retry_after_from(error.headers),
            from_transport=True,
            error=error,
        )

    if isinstance(error, httpx.HTTPStatusError):
        return FailureInfo(
            message=message,
            status_code=error.response.status_code,
            retry_after_ms=_retry_after_from(error.response.headers),
            from_transport=True,
            error=error,
        )

    if isinstance(error, httpx.TimeoutException):
        return FailureInfo(message=message, code="ETIMEDOUT", timed_out=True, from_transport=True, error=error)

    if isinstance(error, httpx.TransportError):
        return FailureInfo(message=message, code="ECONNABORTED", from_transport=True, error=error)

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return FailureInfo(message=message, code="ETIMEDOUT", timed_out=True, from_transport=True, error=error)

    if isinstance(error, ConnectionError):
        return FailureInfo(message=message, code="ECONNRESET", from_transport=True, error=error)

    return FailureInfo(message=message, error=error)
