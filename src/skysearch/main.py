"""Command line entry point."""

import argparse
import asyncio
import sys
from datetime import date

from skysearch.api.server import SearchApiServer
from skysearch.config import Settings, get_settings
from skysearch.exceptions import SearchValidationError, TerminalError
from skysearch.monitoring import MetricsServer, configure_logging, get_logger
from skysearch.resilience.network import NetworkStatus, ProbeNetworkMonitor
from skysearch.search import (
    AirportDirectory,
    FlightSearchClient,
    SearchOrchestrator,
    SearchParams,
    SearchState,
    SearchStatus,
    SortOption,
    sort_flights,
)
from skysearch.search.models import Flight

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="skysearch", description="Resilient flight search")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Search flights")
    search.add_argument("origin", help="Origin airport code")
    search.add_argument("destination", help="Destination airport code")
    search.add_argument("date", type=date.fromisoformat, help="Departure date (YYYY-MM-DD)")
    search.add_argument("--passengers", type=int, default=1, help="Number of passengers")
    search.add_argument("--return-date", type=date.fromisoformat, default=None, help="Return date (YYYY-MM-DD)")
    search.add_argument(
        "--sort",
        choices=[option.value for option in SortOption],
        default=SortOption.PRICE.value,
        help="Sort results by",
    )

    airports = subparsers.add_parser("airports", help="List airports")
    airports.add_argument("--filter", default="", help="Only show airports matching this text")

    subparsers.add_parser("serve", help="Run the /searchFlights route handler")
    return parser


def _print_flights(title: str, flights: list[Flight], sort: str) -> None:
    print(title)
    if not flights:
        print("  No flights found")
        return
    for flight in sort_flights(flights, sort):
        print(
            f"  {flight.flight_number:<8} {flight.airline:<16} "
            f"{flight.departure_airport}->{flight.arrival_airport} "
            f"{flight.departure_time} {flight.duration} {flight.price:.2f}"
        )


def _print_state(state: SearchState) -> None:
    if state.is_active:
        suffix = " (waiting for network)" if state.suspended else ""
        print(f"{state.status_text}...{suffix}", file=sys.stderr)


async def run_search(args: argparse.Namespace, settings: Settings) -> int:
    client = FlightSearchClient.from_settings(settings)
    if settings.network.probe_url:
        network = ProbeNetworkMonitor(
            settings.network.probe_url,
            interval=settings.network.probe_interval,
            timeout=settings.network.probe_timeout,
        )
        await network.probe()
        network.start()
    else:
        network = NetworkStatus(online=True)

    orchestrator = SearchOrchestrator(client, network=network, settings=settings.search)
    orchestrator.subscribe(_print_state)
    params = SearchParams(
        origin=args.origin,
        destination=args.destination,
        departure_date=args.date,
        passengers=args.passengers,
        return_date=args.return_date,
    )

    try:
        state = await orchestrator.start_search(params)
        if state.status != SearchStatus.SUCCESS:
            print(
                f"Search failed ({state.reason.value if state.reason else 'unknown'}): {state.message}. "
                f"Suggested action: {state.action.value if state.action else 'retry'}",
                file=sys.stderr,
            )
            return 1

        _print_flights(f"Outbound {args.origin.upper()} -> {args.destination.upper()}", list(state.results), args.sort)
        if args.return_date is not None:
            try:
                result = await client.search_return_flights(orchestrator.last_params or params)
            except TerminalError as e:
                print(f"Return search failed: {e.last_message}", file=sys.stderr)
                return 1
            _print_flights(f"Return {args.destination.upper()} -> {args.origin.upper()}", result.flights, args.sort)
        return 0
    except SearchValidationError as e:
        print(f"Invalid search ({e.field}): {e.message}", file=sys.stderr)
        return 2
    finally:
        await orchestrator.close()
        if isinstance(network, ProbeNetworkMonitor):
            await network.stop()
        await client.close()


async def run_airports(args: argparse.Namespace, settings: Settings) -> int:
    client = FlightSearchClient.from_settings(settings)
    try:
        directory = AirportDirectory(client)
        await directory.load()
        if not directory.loaded:
            print("Airport list is unavailable", file=sys.stderr)
            return 1
        for option in directory.filter(args.filter):
            print(f"{option.value:<5} {option.label}")
        return 0
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> int:
    """Run the command line interface."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    configure_logging(
        log_level=settings.monitoring.log_level,
        json_output=settings.monitoring.json_logs,
    )

    metrics_server: MetricsServer | None = None
    if settings.monitoring.enabled:
        metrics_server = MetricsServer(port=settings.monitoring.metrics_port)
        metrics_server.start()
        logger.info("Metrics server started", port=settings.monitoring.metrics_port)

    try:
        if args.command == "search":
            return asyncio.run(run_search(args, settings))
        if args.command == "airports":
            return asyncio.run(run_airports(args, settings))

        server = SearchApiServer(backend=settings.backend, api=settings.api)
        logger.info("Starting search API", host=settings.api.host, port=settings.api.port)
        try:
            asyncio.run(server.serve())
        except KeyboardInterrupt:
            logger.info("Search API stopped")
        return 0
    finally:
        if metrics_server is not None:
            metrics_server.stop()


if __name__ == "__main__":
    sys.exit(main())
