"""Classification of failed attempts into retryable and terminal kinds."""

from dataclasses import dataclass

from skysearch.resilience.errors import CONNECTION_ABORT_CODES, ErrorKind, FailureInfo

NON_RETRYABLE_CLIENT_STATUSES = frozenset({400, 401, 403, 404})
RATE_LIMITED_STATUS = 429


@dataclass(frozen=True)
class Classification:
    """Result of failure classification with handling guidance.

    Attributes:
        kind: The error kind.
        retryable: Whether another attempt is worthwhile.
        attempt: Attempt index the failure belongs to (reported only).
        status_code: HTTP status, if any.
        retry_after_ms: Retry-After hint for rate limited responses.
        message: Message of the underlying failure.
    """

    kind: ErrorKind
    retryable: bool
    attempt: int
    status_code: int | None = None
    retry_after_ms: float | None = None
    message: str = ""


def classify_failure(failure: FailureInfo, attempt: int) -> Classification:
    """Classify a failure to decide whether a retry is worthwhile.

    Args:
        failure: Normalised failure of the attempt.
        attempt: 1-based attempt index, only carried along for logging.

    Returns:
        Classification of the failure.
    """

    def result(kind: ErrorKind, retryable: bool, retry_after_ms: float | None = None) -> Classification:
        return Classification(
            kind=kind,
            retryable=retryable,
            attempt=attempt,
            status_code=failure.status_code,
            retry_after_ms=retry_after_ms,
            message=failure.message,
        )

    if failure.cancelled:
        return result(ErrorKind.CANCELLED, False)

    status = failure.status_code
    if status is not None and 400 <= status < 500:
        if status in NON_RETRYABLE_CLIENT_STATUSES:
            return result(ErrorKind.CLIENT_ERROR, False)
        if status == RATE_LIMITED_STATUS:
            return result(ErrorKind.RATE_LIMITED, True, failure.retry_after_ms)
        # Other 4xx are treated as possibly transient validation hiccups
        return result(ErrorKind.CLIENT_ERROR_RETRYABLE, True)

    if status is not None and 500 <= status < 600:
        return result(ErrorKind.SERVER_ERROR, True)

    if status is None and failure.from_transport:
        if failure.timed_out:
            return result(ErrorKind.TIMEOUT, True)
        if failure.code is None or failure.code in CONNECTION_ABORT_CODES:
            return result(ErrorKind.NETWORK_ERROR, True)

    return result(ErrorKind.UNKNOWN, False)
