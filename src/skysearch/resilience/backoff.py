"""Exponential backoff with jitter and server hints."""

import random

from skysearch.resilience.errors import ErrorKind

DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000
SERVER_ERROR_MULTIPLIER = 1.5
MAX_JITTER_RATIO = 0.5


class BackoffCalculator:
    """Computes the delay before the next attempt.

    ``base_delay * 2^(attempt-1)``, scaled by 1.5 for server errors and capped
    at ``max_delay``. A rate limited failure with a Retry-After hint raises the
    pre-jitter delay to at least the hint. Jitter of up to half the delay is
    then added and the result clamped to ``[0, max_delay]``.

    Attributes:
        base_delay_ms: Delay before the second attempt.
        max_delay_ms: Upper bound for any delay.
    """

    def __init__(
        self,
        base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: float = DEFAULT_MAX_DELAY_MS,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the calculator.

        Args:
            base_delay_ms: Delay before the second attempt in milliseconds.
            max_delay_ms: Upper bound for any delay in milliseconds.
            rng: Random source for jitter.
        """
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self._rng = rng or random.Random()

    def base_component(
        self,
        attempt: int,
        error_kind: ErrorKind,
        retry_after_ms: float | None = None,
    ) -> float:
        """Return the delay before jitter for the attempt that just failed.

        Args:
            attempt: 1-based index of the failed attempt.
            error_kind: Kind of the failure.
            retry_after_ms: Optional server hint in milliseconds.

        Returns:
            Delay in milliseconds, without jitter.
        """
        delay = self.base_delay_ms * (2 ** (max(attempt, 1) - 1))
        if error_kind == ErrorKind.SERVER_ERROR:
            delay *= SERVER_ERROR_MULTIPLIER
        delay = min(delay, self.max_delay_ms)

        if error_kind == ErrorKind.RATE_LIMITED and retry_after_ms is not None:
            delay = max(delay, retry_after_ms)

        return delay

    def delay(
        self,
        attempt: int,
        error_kind: ErrorKind,
        retry_after_ms: float | None = None,
    ) -> float:
        """Return the jittered delay in milliseconds, clamped to ``[0, max_delay]``."""
        delay = self.base_component(attempt, error_kind, retry_after_ms)
        jitter = self._rng.uniform(0, MAX_JITTER_RATIO) * delay
        return min(max(delay + jitter, 0.0), self.max_delay_ms)
