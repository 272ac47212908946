"""Cancellable request wrapper: one transport call, one outcome."""

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import Any

from skysearch.exceptions import RequestCancelledError, RequestTimeoutError, TransportError
from skysearch.monitoring.metrics import track_backend_call
from skysearch.resilience.classifier import classify_failure
from skysearch.resilience.errors import ErrorKind, normalize_failure
from skysearch.resilience.signals import CancellationSignal
from skysearch.transport.base import RawResponse, Transport

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class RequestOutcome:
    """Uniform outcome of a wrapped call.

    Attributes:
        response: The response on success.
        error: The failure otherwise.
        duration_ms: Time until the outcome was decided.
    """

    response: RawResponse | None = None
    error: Exception | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        """Whether the call succeeded."""
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        """Error kind of a failed call, None on success."""
        if self.error is None:
            return None
        return classify_failure(normalize_failure(self.error), attempt=1).kind

    def unwrap(self) -> RawResponse:
        """Return the response or raise the failure."""
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


class CancellableRequest:
    """Wraps exactly one transport call with a timeout and an abort signal.

    Whichever of completion, timeout or external cancellation happens first
    decides the outcome; the others become no-ops. Helper tasks and listeners
    are released on every exit path.
    """

    def __init__(self, transport: Transport, default_timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        """Initialize the wrapper.

        Args:
            transport: Transport performing the call.
            default_timeout: Timeout in seconds used when a call passes none.
        """
        self.transport = transport
        self.default_timeout = default_timeout

    async def call(
        self,
        endpoint: str,
        payload: Any = None,
        timeout: float | None = None,
        signal: CancellationSignal | None = None,
    ) -> RequestOutcome:
        """Perform the call and return its outcome.

        Args:
            endpoint: Endpoint to call.
            payload: JSON payload, None for a GET.
            timeout: Deadline in seconds (default timeout if not provided).
            signal: External cancellation signal.

        Returns:
            RequestOutcome; never raises for transport failures.
        """
        timeout = self.default_timeout if timeout is None else timeout
        start = time.time()

        # The transport gets its own signal so an abort reaches it whichever
        # way the call ends.
        abort = signal.child() if signal is not None else CancellationSignal()

        if abort.cancelled:
            error = RequestCancelledError(abort.reason or "cancelled", endpoint=endpoint)
            return self._finish(endpoint, start, "cancelled", error=error)

        request_task = asyncio.ensure_future(
            self.transport.perform_request(endpoint, payload, abort, timeout)
        )
        abort_task = asyncio.ensure_future(abort.wait())

        try:
            done, _ = await asyncio.wait(
                {request_task, abort_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )

            if request_task in done:
                try:
                    response = request_task.result()
                except Exception as e:
                    return self._finish(endpoint, start, "failure", error=e)

                if response.is_error:
                    error = TransportError(
                        response.error_message(),
                        status_code=response.status_code,
                        headers=response.headers,
                        endpoint=endpoint,
                    )
                    return self._finish(endpoint, start, "failure", error=error)

                return self._finish(endpoint, start, "success", response=response)

            if abort_task in done:
                reason = abort.reason or "cancelled"
                logger.debug(f"Call to {endpoint} cancelled: {reason}")
                return self._finish(
                    endpoint, start, "cancelled", error=RequestCancelledError(reason, endpoint=endpoint)
                )

            abort.cancel("timeout")
            logger.warning(f"Call to {endpoint} timed out after {timeout}s")
            return self._finish(
                endpoint,
                start,
                "timeout",
                error=RequestTimeoutError(timeout_seconds=timeout, endpoint=endpoint),
            )
        finally:
            for task in (request_task, abort_task):
                if not task.done():
                    task.cancel()
            for task in (request_task, abort_task):
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
            if not abort.cancelled:
                abort.cancel("released")

    @staticmethod
    def _finish(
        endpoint: str,
        start: float,
        status: str,
        response: RawResponse | None = None,
        error: Exception | None = None,
    ) -> RequestOutcome:
        duration = time.time() - start
        track_backend_call(endpoint, status, duration)
        return RequestOutcome(response=response, error=error, duration_ms=int(duration * 1000))
