"""Flight search built on the resilience layer.

This module provides the flight search client, input validation, result
helpers and the search orchestrator state machine.
"""

from skysearch.search.airports import AirportDirectory
from skysearch.search.client import FlightSearchClient, FlightSearchResult
from skysearch.search.models import Airport, AirportOption, Flight, SearchParams
from skysearch.search.orchestrator import SearchOrchestrator
from skysearch.search.results import Page, SortOption, paginate, sort_flights
from skysearch.search.state import (
    FailureReason,
    RecoveryAction,
    SearchState,
    SearchStatus,
    failure_reason,
    recovery_action,
    transition,
)
from skysearch.search.validation import extract_flights, is_valid_flight, validate_search_params

__all__ = [
    "Airport",
    "AirportDirectory",
    "AirportOption",
    "FailureReason",
    "Flight",
    "FlightSearchClient",
    "FlightSearchResult",
    "Page",
    "RecoveryAction",
    "SearchOrchestrator",
    "SearchParams",
    "SearchState",
    "SearchStatus",
    "SortOption",
    "extract_flights",
    "failure_reason",
    "is_valid_flight",
    "paginate",
    "recovery_action",
    "sort_flights",
    "transition",
    "validate_search_params",
]
