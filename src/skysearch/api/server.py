"""HTTP route forwarding flight searches to the GraphQL backend."""

import asyncio
import logging
import time
from typing import Any, Protocol

from aiohttp import web

from skysearch.api.graphql import GraphQLFlightClient
from skysearch.config import ApiSettings, BackendSettings
from skysearch.exceptions import RequestTimeoutError
from skysearch.monitoring.metrics import track_api_request

logger = logging.getLogger(__name__)

SEARCH_ROUTE = "/searchFlights"


class FlightForwarder(Protocol):
    """Anything able to answer a from/to flight search."""

    async def search_flights(self, origin: str, destination: str) -> list[dict[str, Any]]:
        ...


class SearchApiServer:
    """aiohttp server exposing ``POST /searchFlights``."""

    def __init__(
        self,
        backend: BackendSettings | None = None,
        api: ApiSettings | None = None,
        forwarder: FlightForwarder | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            backend: Backend settings (GraphQL endpoint and timeout).
            api: Bind address settings.
            forwarder: Optional forwarder; built from the GraphQL endpoint if
                not provided.
        """
        self.backend = backend or BackendSettings()
        self.api = api or ApiSettings()
        self.upstream_timeout = self.backend.graphql_timeout
        if forwarder is None and self.backend.graphql_endpoint:
            forwarder = GraphQLFlightClient(self.backend.graphql_endpoint)
        self.forwarder = forwarder
        self.app = web.Application()
        self._setup_routes()
        self.app.on_cleanup.append(self._on_cleanup)

    def _setup_routes(self) -> None:
        """Set up web routes."""
        self.app.add_routes([
            web.route("*", SEARCH_ROUTE, self.handle_search_flights),
        ])

    async def _on_cleanup(self, app: web.Application) -> None:
        if isinstance(self.forwarder, GraphQLFlightClient):
            await self.forwarder.close()

    @staticmethod
    def _respond(status: int, body: Any) -> web.Response:
        track_api_request(SEARCH_ROUTE, status)
        return web.json_response(body, status=status)

    async def handle_search_flights(self, request: web.Request) -> web.Response:
        """Forward a from/to search to the GraphQL backend."""
        if request.method != "POST":
            return self._respond(405, {"message": "Method not allowed"})

        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        origin = body.get("from")
        destination = body.get("to")
        if not origin or not destination:
            return self._respond(400, {"message": 'Missing "from" or "to" parameters'})

        logger.info(f"Searching flights from {origin} to {destination}")

        if self.forwarder is None:
            logger.error("Missing GraphQL endpoint configuration (BACKEND_GRAPHQL_ENDPOINT)")
            return self._respond(500, {"message": "Server configuration error"})

        start = time.time()
        try:
            flights = await asyncio.wait_for(
                self.forwarder.search_flights(origin, destination),
                timeout=self.upstream_timeout,
            )
        except (asyncio.TimeoutError, RequestTimeoutError):
            logger.error(f"GraphQL request timed out after {self.upstream_timeout}s")
            return self._respond(504, {"message": "Upstream service timeout"})
        except Exception as e:
            logger.error(f"Error searching flights: {type(e).__name__}: {e}")
            return self._respond(500, {"message": "Error searching flights", "error": str(e)})

        logger.info(f"GraphQL request completed in {(time.time() - start) * 1000:.0f}ms")
        return self._respond(200, flights or [])

    async def serve(self) -> None:
        """Run until cancelled."""
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, self.api.host, self.api.port)
        await site.start()
        logger.info(f"Search API listening on http://{self.api.host}:{self.api.port}{SEARCH_ROUTE}")

        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await runner.cleanup()


def create_app(
    backend: BackendSettings | None = None,
    forwarder: FlightForwarder | None = None,
) -> web.Application:
    """Create the aiohttp application."""
    return SearchApiServer(backend=backend, forwarder=forwarder).app
