"""Pytest configuration and fixtures for SkySearch tests."""

import asyncio
from datetime import date
from typing import Any

import pytest

from skysearch.resilience.backoff import BackoffCalculator
from skysearch.resilience.retry import RetryPolicy
from skysearch.resilience.signals import CancellationSignal
from skysearch.search.client import FlightSearchClient
from skysearch.search.models import SearchParams
from skysearch.transport.base import RawResponse

HANG = object()


class ScriptedTransport:
    """Transport replaying a script of responses, errors and hangs.

    Each call consumes the next item: a ``RawResponse`` is returned, an
    exception is raised and ``HANG`` blocks until the call is cancelled.
    The last item repeats once the script is exhausted.
    """

    def __init__(self, *script: Any) -> None:
        self.script = list(script)
        self.calls: list[dict[str, Any]] = []
        self.signals: list[CancellationSignal] = []
        self.closed = False

    async def perform_request(
        self,
        endpoint: str,
        payload: Any,
        signal: CancellationSignal,
        timeout: float,
    ) -> RawResponse:
        self.calls.append({"endpoint": endpoint, "payload": payload, "timeout": timeout})
        self.signals.append(signal)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if item is HANG:
            await asyncio.sleep(3600)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def flight_payload() -> dict[str, Any]:
    """A well-formed flight entry as sent by the backend."""
    return {
        "flightNumber": "AI-101",
        "airline": "Air India",
        "departureAirport": "DEL",
        "arrivalAirport": "BOM",
        "departureTime": "2024-12-01T06:00:00",
        "arrivalTime": "2024-12-01T08:10:00",
        "duration": "2h 10m",
        "price": 5400,
        "stops": 0,
    }


@pytest.fixture
def today() -> date:
    """Reference date used for the "not in the past" checks."""
    return date(2024, 11, 1)


@pytest.fixture
def search_params() -> SearchParams:
    """One-way DEL -> BOM search for a single passenger."""
    return SearchParams(origin="DEL", destination="BOM", departure_date=date(2024, 12, 1), passengers=1)


# =============================================================================
# Retry Fixtures
# =============================================================================

@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three attempts with millisecond delays."""
    return RetryPolicy(max_attempts=3, base_delay_ms=1, max_delay_ms=5)


@pytest.fixture
def fast_backoff() -> BackoffCalculator:
    return BackoffCalculator(base_delay_ms=1, max_delay_ms=5)


@pytest.fixture
def hang() -> object:
    """Script item that blocks until the call is cancelled."""
    return HANG


@pytest.fixture
def make_transport():
    """Factory fixture creating a scripted transport."""
    def _create(*script: Any) -> ScriptedTransport:
        return ScriptedTransport(*script)
    return _create


@pytest.fixture
def make_client(fast_policy: RetryPolicy):
    """Factory fixture creating a search client over a scripted transport."""
    def _create(transport: ScriptedTransport, policy: RetryPolicy | None = None, timeout: float = 1.0) -> FlightSearchClient:
        return FlightSearchClient(transport, policy=policy or fast_policy, per_call_timeout=timeout)
    return _create
