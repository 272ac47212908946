"""Flight search client built on the retry layer."""

import logging
from dataclasses import dataclass, field
from typing import Any

from skysearch.config import Settings
from skysearch.exceptions import TerminalError
from skysearch.resilience.backoff import BackoffCalculator
from skysearch.resilience.errors import ErrorKind
from skysearch.resilience.request import DEFAULT_TIMEOUT_SECONDS, CancellableRequest
from skysearch.resilience.retry import (
    Attempt,
    BeforeAttempt,
    OnAttempt,
    RetryExecutor,
    RetryPolicy,
)
from skysearch.resilience.signals import CancellationSignal
from skysearch.search.models import Airport, Flight, SearchParams
from skysearch.search.validation import extract_flights
from skysearch.transport.base import Transport
from skysearch.transport.http import HttpTransport

logger = logging.getLogger(__name__)


@dataclass
class FlightSearchResult:
    """Flights returned by a search, with retry telemetry.

    Attributes:
        flights: Well-formed flights.
        attempts_used: Attempt number that succeeded.
        was_retried: Whether more than one attempt was needed.
        attempts: Per-attempt records.
    """

    flights: list[Flight]
    attempts_used: int = 1
    was_retried: bool = False
    attempts: list[Attempt] = field(default_factory=list)

    def is_empty(self) -> bool:
        """Check if there are no flights."""
        return len(self.flights) == 0


class FlightSearchClient:
    """Calls the flight-search and airport-lookup endpoints with retries.

    Each call goes through a ``RetryExecutor`` whose operation is a single
    ``CancellableRequest`` call, so every attempt carries its own timeout.
    """

    def __init__(
        self,
        transport: Transport,
        policy: RetryPolicy | None = None,
        per_call_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        search_endpoint: str = "/searchFlights",
        airports_endpoint: str = "/getAirports",
        backoff: BackoffCalculator | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            transport: Transport used for every call.
            policy: Retry policy. Uses defaults if not provided.
            per_call_timeout: Timeout of a single call in seconds.
            search_endpoint: Flight search endpoint.
            airports_endpoint: Airport lookup endpoint.
            backoff: Optional backoff calculator shared by all operations.
        """
        self.transport = transport
        self.policy = policy or RetryPolicy()
        self.per_call_timeout = per_call_timeout
        self.search_endpoint = search_endpoint
        self.airports_endpoint = airports_endpoint
        self._request = CancellableRequest(transport, default_timeout=per_call_timeout)
        self._search_executor = RetryExecutor(self.policy, backoff, operation_name="flight_search")
        self._airports_executor = RetryExecutor(self.policy, backoff, operation_name="airport_lookup")

    @classmethod
    def from_settings(cls, settings: Settings) -> "FlightSearchClient":
        """Create a client talking HTTP to the configured backend."""
        transport = HttpTransport(
            base_url=settings.backend.base_url,
            access_token=settings.backend.access_token,
        )
        return cls(
            transport,
            policy=RetryPolicy.from_settings(settings.retry),
            per_call_timeout=settings.search.per_call_timeout_ms / 1000,
            search_endpoint=settings.search.search_endpoint,
            airports_endpoint=settings.search.airports_endpoint,
        )

    async def _call(self, endpoint: str, payload: Any, signal: CancellationSignal | None) -> Any:
        outcome = await self._request.call(endpoint, payload, timeout=self.per_call_timeout, signal=signal)
        if not outcome.ok:
            logger.debug(f"Call to {endpoint} failed ({outcome.kind.value}) after {outcome.duration_ms}ms")
        return outcome.unwrap().data

    async def search_flights(
        self,
        params: SearchParams,
        signal: CancellationSignal | None = None,
        on_attempt: OnAttempt | None = None,
        before_attempt: BeforeAttempt | None = None,
    ) -> FlightSearchResult:
        """Search flights for validated parameters.

        Args:
            params: Validated search parameters.
            signal: Optional cancellation signal for the whole loop.
            on_attempt: Optional per-failed-attempt callback.
            before_attempt: Optional gate awaited before each retry.

        Returns:
            FlightSearchResult with well-formed flights.

        Raises:
            TerminalError: If the search fails for good.
        """
        payload = params.to_payload()
        logger.info(f"Searching flights {params.origin} -> {params.destination} on {params.departure_date}")

        async def _search_operation() -> Any:
            return await self._call(self.search_endpoint, payload, signal)

        retry = await self._search_executor.execute(
            _search_operation,
            on_attempt=on_attempt,
            cancel_signal=signal,
            before_attempt=before_attempt,
        )

        flights = extract_flights(retry.result)
        logger.info(
            f"Search completed: {len(flights)} flights for {params.origin} -> {params.destination} "
            f"(attempts: {retry.attempts_used})"
        )
        return FlightSearchResult(
            flights=flights,
            attempts_used=retry.attempts_used,
            was_retried=retry.was_retried,
            attempts=retry.attempts,
        )

    async def search_return_flights(
        self,
        params: SearchParams,
        signal: CancellationSignal | None = None,
        empty_on_failure: bool = True,
    ) -> FlightSearchResult:
        """Search the return leg (destination back to origin on the return date).

        A failed return search yields no flights unless ``empty_on_failure``
        is False. Cancellation is always raised.

        Raises:
            ValueError: If the parameters have no return date.
            TerminalError: If the search is cancelled, or fails for good with
                ``empty_on_failure`` disabled.
        """
        return_params = params.reversed()
        try:
            return await self.search_flights(return_params, signal=signal)
        except TerminalError as e:
            if not empty_on_failure or e.kind == ErrorKind.CANCELLED:
                raise
            logger.warning(f"Return search failed [{e.kind.value}], showing no return flights: {e.last_message}")
            return FlightSearchResult(flights=[], attempts_used=e.attempts_used, was_retried=e.attempts_used > 1)

    async def fetch_airports(self, signal: CancellationSignal | None = None) -> list[Airport]:
        """Fetch the airport list.

        Raises:
            TerminalError: If the lookup fails for good.
        """

        async def _airports_operation() -> Any:
            return await self._call(self.airports_endpoint, None, signal)

        retry = await self._airports_executor.execute(_airports_operation, cancel_signal=signal)
        data = retry.result if isinstance(retry.result, list) else []
        return [Airport.from_dict(item) for item in data if isinstance(item, dict) and item.get("code")]

    async def close(self) -> None:
        """Close the transport."""
        await self.transport.close()
