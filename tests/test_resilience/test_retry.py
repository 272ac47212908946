"""Tests for the retry executor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from skysearch.exceptions import ConfigurationError, TerminalError, TransportError
from skysearch.resilience.errors import ErrorKind
from skysearch.resilience.retry import AttemptOutcome, RetryExecutor, RetryPolicy
from skysearch.resilience.signals import CancellationSignal


def server_error() -> TransportError:
    return TransportError("Internal Server Error", status_code=500)


class TestRetryPolicy:
    """Tests for RetryPolicy validation."""

    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.base_delay_ms == 1000
        assert policy.max_delay_ms == 30000

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"base_delay_ms": -1}, {"max_delay_ms": -5}],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            RetryPolicy(**kwargs)

    def test_from_settings(self):
        settings = MagicMock(max_attempts=5, base_delay_ms=200, max_delay_ms=2000)

        policy = RetryPolicy.from_settings(settings)

        assert policy == RetryPolicy(max_attempts=5, base_delay_ms=200, max_delay_ms=2000)


class TestRetryExecutor:
    """Tests for RetryExecutor.execute."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(return_value="ok")

        result = await executor.execute(operation)

        assert result.result == "ok"
        assert result.attempts_used == 1
        assert result.was_retried is False
        assert operation.await_count == 1
        assert [a.outcome for a in result.attempts] == [AttemptOutcome.SUCCESS]

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=[server_error(), "flights"])

        result = await executor.execute(operation)

        assert result.result == "flights"
        assert result.attempts_used == 2
        assert result.was_retried is True
        assert result.attempts[0].error_kind == ErrorKind.SERVER_ERROR
        assert result.attempts[1].delay_before_ms > 0

    @pytest.mark.asyncio
    async def test_exhausts_attempts(self, fast_policy):
        """Test that a persistent 500 ends after exactly max_attempts."""
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=server_error())

        with pytest.raises(TerminalError) as exc_info:
            await executor.execute(operation)

        error = exc_info.value
        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.attempts_used == 3
        assert error.exhausted is True
        assert error.retryable is True
        assert "Internal Server Error" in error.last_message
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_fails_immediately(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=TransportError("Unauthorized", status_code=401))
        on_attempt = MagicMock()

        with pytest.raises(TerminalError) as exc_info:
            await executor.execute(operation, on_attempt=on_attempt)

        assert exc_info.value.kind == ErrorKind.CLIENT_ERROR
        assert exc_info.value.attempts_used == 1
        assert exc_info.value.exhausted is False
        assert operation.await_count == 1
        on_attempt.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self):
        executor = RetryExecutor(RetryPolicy(max_attempts=1, base_delay_ms=1, max_delay_ms=1))
        operation = AsyncMock(side_effect=server_error())

        with pytest.raises(TerminalError) as exc_info:
            await executor.execute(operation)

        assert exc_info.value.attempts_used == 1
        assert exc_info.value.exhausted is True

    @pytest.mark.asyncio
    async def test_unknown_error_not_retried(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=ValueError("bad json"))

        with pytest.raises(TerminalError) as exc_info:
            await executor.execute(operation)

        assert exc_info.value.kind == ErrorKind.UNKNOWN
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_on_attempt_called_in_order(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=[server_error(), server_error(), "ok"])
        seen = []

        await executor.execute(operation, on_attempt=lambda n, c: seen.append((n, c.kind)))

        assert seen == [(1, ErrorKind.SERVER_ERROR), (2, ErrorKind.SERVER_ERROR)]

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_loop(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=[server_error(), "ok"])
        on_attempt = MagicMock(side_effect=RuntimeError("ui bug"))

        result = await executor.execute(operation, on_attempt=on_attempt)

        assert result.result == "ok"
        on_attempt.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        signal = CancellationSignal()
        signal.cancel("user")
        operation = AsyncMock(return_value="ok")

        with pytest.raises(TerminalError) as exc_info:
            await executor.execute(operation, cancel_signal=signal)

        assert exc_info.value.kind == ErrorKind.CANCELLED
        assert exc_info.value.attempts_used == 0
        operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_during_backoff(self):
        """Test that cancelling during the sleep ends the loop without another attempt."""
        executor = RetryExecutor(RetryPolicy(max_attempts=3, base_delay_ms=5000, max_delay_ms=10000))
        signal = CancellationSignal()
        operation = AsyncMock(side_effect=server_error())

        def cancel_soon(attempt, classification):
            asyncio.get_running_loop().call_later(0.01, signal.cancel, "user")

        with pytest.raises(TerminalError) as exc_info:
            await asyncio.wait_for(
                executor.execute(operation, on_attempt=cancel_soon, cancel_signal=signal),
                timeout=2,
            )

        assert exc_info.value.kind == ErrorKind.CANCELLED
        assert exc_info.value.attempts_used == 1
        assert exc_info.value.retryable is False
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_before_attempt_awaited_before_retries(self, fast_policy):
        executor = RetryExecutor(fast_policy)
        operation = AsyncMock(side_effect=[server_error(), server_error(), "ok"])
        gate = AsyncMock()

        await executor.execute(operation, before_attempt=gate)

        assert gate.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limited_uses_retry_after(self):
        backoff = MagicMock()
        backoff.delay.return_value = 0.0
        executor = RetryExecutor(RetryPolicy(max_attempts=2), backoff=backoff)
        error = TransportError("Too Many Requests", status_code=429, headers={"Retry-After": "5"})
        operation = AsyncMock(side_effect=[error, "ok"])

        await executor.execute(operation)

        backoff.delay.assert_called_once_with(1, ErrorKind.RATE_LIMITED, 5000)
