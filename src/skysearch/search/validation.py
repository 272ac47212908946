"""Local validation of search input and of backend payloads."""

import logging
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from skysearch.exceptions import SearchValidationError
from skysearch.search.models import Flight, SearchParams

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSENGERS = 10


def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise SearchValidationError(f"Invalid date: {value!r}", field=field) from e
    raise SearchValidationError("Please choose your departure date", field=field)


def validate_search_params(
    params: SearchParams | Mapping[str, Any],
    today: date | None = None,
    max_passengers: int = DEFAULT_MAX_PASSENGERS,
) -> SearchParams:
    """Validate search input and build ``SearchParams``.

    Accepts either ``SearchParams`` or a mapping using the request payload keys
    (``from``, ``to``, ``date``, ``passengers``, ``returnDate``).

    Args:
        params: Search input.
        today: Reference date for "not in the past" checks.
        max_passengers: Upper bound for passengers.

    Returns:
        Validated SearchParams.

    Raises:
        SearchValidationError: If any precondition fails.
    """
    if isinstance(params, SearchParams):
        origin = params.origin
        destination = params.destination
        departure = params.departure_date
        passengers = params.passengers
        return_date = params.return_date
    else:
        origin = params.get("from") or params.get("origin") or ""
        destination = params.get("to") or params.get("destination") or ""
        departure = params.get("date") or params.get("departure_date")
        passengers = params.get("passengers", 1)
        return_date = params.get("returnDate") or params.get("return_date")

    origin = str(origin).strip().upper()
    destination = str(destination).strip().upper()
    if not origin or not destination:
        raise SearchValidationError("Please select both departure and arrival cities", field="route")
    if origin == destination:
        raise SearchValidationError(
            "Please select valid, different departure and arrival airports", field="route"
        )

    departure_date = _parse_date(departure, "date")
    today = today or date.today()
    if departure_date < today:
        raise SearchValidationError("Departure date cannot be in the past", field="date")

    if isinstance(passengers, bool) or (isinstance(passengers, float) and not passengers.is_integer()):
        raise SearchValidationError("Passenger count must be a whole number", field="passengers")
    try:
        passengers = int(passengers)
    except (TypeError, ValueError) as e:
        raise SearchValidationError("Passenger count must be a number", field="passengers") from e
    if passengers < 1:
        raise SearchValidationError("Please select at least one passenger", field="passengers")
    if passengers > max_passengers:
        raise SearchValidationError(
            f"Maximum {max_passengers} passengers allowed per booking", field="passengers"
        )

    parsed_return: date | None = None
    if return_date:
        parsed_return = _parse_date(return_date, "returnDate")
        if parsed_return < departure_date:
            raise SearchValidationError("Return date cannot be before departure", field="returnDate")

    return SearchParams(
        origin=origin,
        destination=destination,
        departure_date=departure_date,
        passengers=passengers,
        return_date=parsed_return,
    )


def is_valid_flight(entry: Any) -> bool:
    """Check that a payload entry has the fields a flight needs."""
    if not isinstance(entry, Mapping):
        return False
    if not entry.get("flightNumber"):
        return False
    price = entry.get("price")
    if price is None or isinstance(price, bool):
        return False
    try:
        if float(price) < 0:
            return False
    except (TypeError, ValueError):
        return False
    if not entry.get("departureAirport") or not entry.get("arrivalAirport"):
        return False
    return True


def extract_flights(payload: Any) -> list[Flight]:
    """Extract well-formed flights from a search response payload.

    The backend answers with a bare list, ``{"flights": [...]}`` or
    ``{"data": [...]}``. Malformed entries are dropped.

    Args:
        payload: Decoded response body.

    Returns:
        List of flights.
    """
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, Mapping) and isinstance(payload.get("flights"), list):
        entries = payload["flights"]
    elif isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        entries = payload["data"]
    else:
        entries = []

    flights = [Flight.from_dict(entry) for entry in entries if is_valid_flight(entry)]
    dropped = len(entries) - len(flights)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed flight entries out of {len(entries)}")
    return flights
