"""Retry executor: the attempt loop with classification and backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from skysearch.exceptions import ConfigurationError, TerminalError
from skysearch.monitoring.metrics import track_attempt, track_retry, track_terminal_error
from skysearch.resilience.backoff import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    BackoffCalculator,
)
from skysearch.resilience.classifier import Classification, classify_failure
from skysearch.resilience.errors import ErrorKind, normalize_failure
from skysearch.resilience.signals import CancellationSignal

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnAttempt = Callable[[int, Classification], None]
BeforeAttempt = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration, fixed for the lifetime of an executor.

    Attributes:
        max_attempts: Maximum number of attempts, first one included.
        base_delay_ms: Delay before the second attempt in milliseconds.
        max_delay_ms: Upper bound for any delay in milliseconds.
    """

    max_attempts: int = 3
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS

    def __post_init__(self) -> None:
        """Validate parameters."""
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1", config_key="max_attempts")
        if self.base_delay_ms < 0:
            raise ConfigurationError("base_delay_ms cannot be negative", config_key="base_delay_ms")
        if self.max_delay_ms < 0:
            raise ConfigurationError("max_delay_ms cannot be negative", config_key="max_delay_ms")

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        """Create a policy from ``RetrySettings``."""
        return cls(
            max_attempts=settings.max_attempts,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
        )


class AttemptOutcome(str, Enum):
    """Outcome of a single attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Attempt:
    """Record of one execution of the wrapped operation."""

    number: int
    timestamp: datetime
    outcome: AttemptOutcome
    error_kind: ErrorKind | None = None
    delay_before_ms: float = 0.0


@dataclass
class RetryResult(Generic[T]):
    """Successful result of a retry loop.

    Attributes:
        result: Value returned by the operation.
        attempts_used: Attempt number that succeeded.
        was_retried: Whether more than one attempt was needed.
        attempts: Per-attempt records.
    """

    result: T
    attempts_used: int
    was_retried: bool
    attempts: list[Attempt] = field(default_factory=list)


class RetryExecutor:
    """Drives the attempt loop for one operation at a time.

    Attempts are strictly sequential. The only suspension points are the
    operation itself, the backoff sleep and the optional ``before_attempt``
    gate; all of them honour the cancellation signal.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        backoff: BackoffCalculator | None = None,
        operation_name: str = "operation",
    ) -> None:
        """Initialize the executor.

        Args:
            policy: Retry policy. Uses defaults if not provided.
            backoff: Backoff calculator. Built from the policy if not provided.
            operation_name: Name for logging and metrics.
        """
        self.policy = policy or RetryPolicy()
        self.backoff = backoff or BackoffCalculator(
            base_delay_ms=self.policy.base_delay_ms,
            max_delay_ms=self.policy.max_delay_ms,
        )
        self.operation_name = operation_name

    def _notify(self, on_attempt: OnAttempt | None, attempt: int, classification: Classification) -> None:
        if on_attempt is None:
            return
        try:
            on_attempt(attempt, classification)
        except Exception as e:
            # Status callbacks must never change the course of the loop
            logger.warning(f"{self.operation_name} on_attempt callback failed: {type(e).__name__}: {e}")

    def _cancelled(self, attempts_used: int, signal: CancellationSignal, cause: Exception | None = None) -> TerminalError:
        track_terminal_error(self.operation_name, ErrorKind.CANCELLED.value)
        logger.info(
            f"{self.operation_name} cancelled ({signal.reason}) after {attempts_used} attempt(s)"
        )
        return TerminalError(
            kind=ErrorKind.CANCELLED,
            attempts_used=attempts_used,
            last_message=f"Operation cancelled: {signal.reason}",
            exhausted=False,
            cause=cause,
        )

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_attempt: OnAttempt | None = None,
        cancel_signal: CancellationSignal | None = None,
        before_attempt: BeforeAttempt | None = None,
    ) -> RetryResult[T]:
        """Execute an async operation with retry logic.

        Args:
            operation: Async callable to execute; failures are raised.
            on_attempt: Called with the failed attempt number and its
                classification before sleeping for a retry.
            cancel_signal: Optional signal aborting the loop.
            before_attempt: Optional awaitable gate run before every retry.

        Returns:
            RetryResult with the operation result.

        Raises:
            TerminalError: On a non-retryable failure, when attempts are
                exhausted (carrying the last observed failure) or on cancellation.
        """
        attempts: list[Attempt] = []
        delay_ms = 0.0
        max_attempts = self.policy.max_attempts

        for attempt in range(1, max_attempts + 1):
            if cancel_signal is not None and cancel_signal.cancelled:
                raise self._cancelled(attempt - 1, cancel_signal)

            try:
                result = await operation()
            except Exception as e:
                classification = classify_failure(normalize_failure(e), attempt)
                attempts.append(Attempt(
                    number=attempt,
                    timestamp=datetime.now(timezone.utc),
                    outcome=AttemptOutcome.FAILURE,
                    error_kind=classification.kind,
                    delay_before_ms=delay_ms,
                ))
                track_attempt(self.operation_name, AttemptOutcome.FAILURE.value)

                log_level = logging.WARNING if attempt < max_attempts else logging.ERROR
                logger.log(
                    log_level,
                    f"{self.operation_name} attempt {attempt}/{max_attempts} failed "
                    f"[{classification.kind.value}]: {type(e).__name__}: {e}",
                )

                if classification.kind == ErrorKind.CANCELLED and cancel_signal is not None:
                    raise self._cancelled(attempt, cancel_signal, cause=e) from e

                if not classification.retryable or attempt >= max_attempts:
                    exhausted = classification.retryable
                    if exhausted:
                        logger.error(f"{self.operation_name} failed after {attempt} attempts")
                    else:
                        logger.error(
                            f"{self.operation_name} failed with non-retryable error: "
                            f"{classification.kind.value}"
                        )
                    track_terminal_error(self.operation_name, classification.kind.value)
                    raise TerminalError(
                        kind=classification.kind,
                        attempts_used=attempt,
                        last_message=classification.message,
                        exhausted=exhausted,
                        classification=classification,
                        cause=e,
                    ) from e

                delay_ms = self.backoff.delay(attempt, classification.kind, classification.retry_after_ms)
                track_retry(self.operation_name, classification.kind.value, delay_ms)
                self._notify(on_attempt, attempt, classification)

                logger.info(
                    f"{self.operation_name} retrying in {delay_ms:.0f}ms "
                    f"(attempt {attempt + 1}/{max_attempts})"
                )

                if cancel_signal is not None:
                    if await cancel_signal.sleep(delay_ms / 1000):
                        raise self._cancelled(attempt, cancel_signal, cause=e) from e
                else:
                    await asyncio.sleep(delay_ms / 1000)

                if before_attempt is not None:
                    await before_attempt()
                continue

            attempts.append(Attempt(
                number=attempt,
                timestamp=datetime.now(timezone.utc),
                outcome=AttemptOutcome.SUCCESS,
                delay_before_ms=delay_ms,
            ))
            track_attempt(self.operation_name, AttemptOutcome.SUCCESS.value)
            if attempt > 1:
                logger.info(f"{self.operation_name} succeeded after {attempt - 1} retries")

            return RetryResult(
                result=result,
                attempts_used=attempt,
                was_retried=attempt > 1,
                attempts=attempts,
            )

        # Unreachable: the last failing attempt always raises
        raise AssertionError("retry loop exited without result")
