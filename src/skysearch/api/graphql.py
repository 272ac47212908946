"""GraphQL forwarder for the flight search route."""

import logging
import time
from typing import Any

import httpx

from skysearch.exceptions import RequestTimeoutError, TransportError
from skysearch.monitoring.metrics import track_backend_call

logger = logging.getLogger(__name__)

SEARCH_FLIGHTS_QUERY = """
query searchFlights($fromAirport: String!, $toAirport: String!) {
  searchFlights(fromAirport: $fromAirport, toAirport: $toAirport) {
    airline
    arrivalAirport
    departureAirport
    arrivalTime
    departureTime
    duration
    price
    stops
    flightNumber
  }
}
"""


class GraphQLFlightClient:
    """Posts the flight search query to a GraphQL endpoint."""

    def __init__(self, endpoint: str, client: httpx.AsyncClient | None = None) -> None:
        """Initialize the forwarder.

        Args:
            endpoint: GraphQL endpoint URL.
            client: Optional pre-built client.
        """
        self.endpoint = endpoint
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()

    async def execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Execute a query and return its ``data`` object.

        Raises:
            RequestTimeoutError: If httpx times out.
            TransportError: On an HTTP error status or GraphQL errors.
        """
        start = time.time()
        try:
            response = await self._client.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            track_backend_call("graphql", "timeout", time.time() - start)
            raise RequestTimeoutError(endpoint=self.endpoint, cause=e) from e

        track_backend_call("graphql", str(response.status_code), time.time() - start)
        if response.status_code >= 400:
            raise TransportError(
                f"GraphQL endpoint returned {response.status_code}",
                status_code=response.status_code,
                headers=dict(response.headers),
                endpoint=self.endpoint,
            )

        body = response.json()
        errors = body.get("errors")
        if errors:
            message = errors[0].get("message", "GraphQL error") if isinstance(errors[0], dict) else str(errors[0])
            raise TransportError(message, endpoint=self.endpoint)
        return body.get("data") or {}

    async def search_flights(self, origin: str, destination: str) -> list[dict[str, Any]]:
        """Search flights between two airports."""
        data = await self.execute(
            SEARCH_FLIGHTS_QUERY,
            {"fromAirport": origin, "toAirport": destination},
        )
        return data.get("searchFlights") or []

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
