"""Custom exceptions for the SkySearch library.

This module defines a hierarchy of exceptions for better error handling
and more informative error messages throughout the library.

Exception Hierarchy:
    SkySearchError (base)
    ├── ConfigurationError
    ├── SearchValidationError
    ├── InvalidTransitionError
    ├── TransportError
    │   ├── RequestTimeoutError
    │   └── RequestCancelledError
    └── TerminalError
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skysearch.resilience.classifier import Classification
    from skysearch.resilience.errors import ErrorKind


class SkySearchError(Exception):
    """Base exception for all SkySearch errors.

    All custom exceptions in the library should inherit from this class.
    This allows catching all library-specific errors with a single except clause.

    Attributes:
        message: Human-readable error description.
        cause: Optional underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            cause: Optional underlying exception that caused this error.
        """
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ConfigurationError(SkySearchError):
    """Error in library configuration.

    Raised when a retry policy or a setting is missing or invalid.
    """

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the configuration error.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            cause: Optional underlying exception.
        """
        self.config_key = config_key
        if config_key:
            message = f"{message} (key: {config_key})"
        super().__init__(message, cause)


class SearchValidationError(SkySearchError):
    """Local rejection of search input.

    Never retried and never counted as an attempt.

    Attributes:
        field: The input field that failed validation.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidTransitionError(SkySearchError):
    """Raised when an action is not allowed in the current search state."""

    pass


class TransportError(SkySearchError):
    """Failure reported by the transport for a single backend call.

    Attributes:
        status_code: HTTP status of the response, if one was received.
        headers: Response headers (used for Retry-After hints).
        code: Transport error code such as ECONNABORTED or ETIMEDOUT.
        endpoint: Endpoint that was called.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        code: str | None = None,
        endpoint: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the transport error.

        Args:
            message: Human-readable error description.
            status_code: HTTP status code, if any.
            headers: Response headers, if any.
            code: Transport error code, if any.
            endpoint: Endpoint that was called.
            cause: Optional underlying exception.
        """
        self.status_code = status_code
        self.headers = dict(headers or {})
        self.code = code
        self.endpoint = endpoint
        if status_code is not None:
            message = f"{message} (status: {status_code})"
        super().__init__(message, cause)


class RequestTimeoutError(TransportError):
    """Error when a backend call exceeds its deadline.

    Attributes:
        timeout_seconds: The timeout duration that was exceeded.
    """

    def __init__(
        self,
        message: str = "Request timed out",
        timeout_seconds: float | None = None,
        endpoint: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the timeout error.

        Args:
            message: Human-readable error description.
            timeout_seconds: The timeout duration that was exceeded.
            endpoint: Endpoint that was called.
            cause: Optional underlying exception.
        """
        self.timeout_seconds = timeout_seconds
        if timeout_seconds:
            message = f"{message} (timeout: {timeout_seconds}s)"
        super().__init__(message, code="ETIMEDOUT", endpoint=endpoint, cause=cause)


class RequestCancelledError(TransportError):
    """Error when a backend call is aborted by its caller.

    Attributes:
        reason: Why the call was cancelled (superseded, user, outer_timeout...).
    """

    def __init__(
        self,
        reason: str = "cancelled",
        endpoint: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(f"Request cancelled: {reason}", code="ECANCELED", endpoint=endpoint)


class TerminalError(SkySearchError):
    """Error that ends a retry loop with no further attempts.

    This is the only failure that crosses the retry layer's public boundary.

    Attributes:
        kind: Classification of the last observed failure.
        attempts_used: Number of attempts performed.
        last_message: Message of the last observed failure.
        exhausted: True when retryable attempts ran out.
        classification: Full classification of the last failure.
    """

    def __init__(
        self,
        kind: "ErrorKind",
        attempts_used: int,
        last_message: str,
        exhausted: bool = False,
        classification: "Classification | None" = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the terminal error.

        Args:
            kind: Classification of the last observed failure.
            attempts_used: Number of attempts performed.
            last_message: Message of the last observed failure.
            exhausted: Whether the loop stopped because attempts ran out.
            classification: Full classification of the last failure.
            cause: The last observed exception.
        """
        self.kind = kind
        self.attempts_used = attempts_used
        self.last_message = last_message
        self.exhausted = exhausted
        self.classification = classification
        super().__init__(last_message, cause)

    @property
    def retryable(self) -> bool:
        """Whether the last failure was of a retryable kind."""
        return self.classification.retryable if self.classification else False

    def __repr__(self) -> str:
        return (
            f"TerminalError(kind={self.kind.value!r}, attempts_used={self.attempts_used}, "
            f"exhausted={self.exhausted}, last_message={self.last_message!r})"
        )
