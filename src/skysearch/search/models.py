"""Data models for flight search."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Flight:
    """A single flight offer.

    Attributes:
        flight_number: Carrier flight number.
        departure_airport: IATA code of the origin.
        arrival_airport: IATA code of the destination.
        price: Fare amount.
        airline: Operating airline.
        departure_time: Departure time as sent by the backend.
        arrival_time: Arrival time as sent by the backend.
        duration: Duration as sent by the backend.
        stops: Number of stops.
    """

    flight_number: str
    departure_airport: str
    arrival_airport: str
    price: float
    airline: str = ""
    departure_time: str = ""
    arrival_time: str = ""
    duration: str = ""
    stops: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Flight":
        """Create a Flight from a backend payload entry (camelCase keys)."""
        return cls(
            flight_number=str(data.get("flightNumber", "")),
            departure_airport=str(data.get("departureAirport", "")),
            arrival_airport=str(data.get("arrivalAirport", "")),
            price=float(data.get("price", 0)),
            airline=str(data.get("airline") or ""),
            departure_time=str(data.get("departureTime") or ""),
            arrival_time=str(data.get("arrivalTime") or ""),
            duration=str(data.get("duration") or ""),
            stops=_as_int(data.get("stops")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the backend payload shape."""
        return {
            "flightNumber": self.flight_number,
            "departureAirport": self.departure_airport,
            "arrivalAirport": self.arrival_airport,
            "price": self.price,
            "airline": self.airline,
            "departureTime": self.departure_time,
            "arrivalTime": self.arrival_time,
            "duration": self.duration,
            "stops": self.stops,
        }


@dataclass(frozen=True)
class SearchParams:
    """Validated flight search input.

    Attributes:
        origin: Origin airport code.
        destination: Destination airport code.
        departure_date: Date of the outbound flight.
        passengers: Total number of passengers.
        return_date: Optional date of the return flight.
    """

    origin: str
    destination: str
    departure_date: date
    passengers: int = 1
    return_date: date | None = None

    def to_payload(self) -> dict[str, Any]:
        """Build the backend request payload."""
        return {
            "from": self.origin,
            "to": self.destination,
            "date": self.departure_date.isoformat(),
            "passengers": self.passengers,
            "returnDate": self.return_date.isoformat() if self.return_date else None,
        }

    def reversed(self) -> "SearchParams":
        """Return the parameters of the return leg.

        Raises:
            ValueError: If there is no return date.
        """
        if self.return_date is None:
            raise ValueError("Search has no return date")
        return SearchParams(
            origin=self.destination,
            destination=self.origin,
            departure_date=self.return_date,
            passengers=self.passengers,
        )


@dataclass(frozen=True)
class Airport:
    """An airport known to the backend."""

    code: str
    city: str = ""
    country: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Airport":
        return cls(
            code=str(data.get("code", "")),
            city=str(data.get("city") or ""),
            country=str(data.get("country") or ""),
        )

    @property
    def label(self) -> str:
        """Display label, e.g. ``Delhi (DEL) India``."""
        return f"{self.city} ({self.code}) {self.country}".strip()


@dataclass(frozen=True)
class AirportOption:
    """Selectable airport option (value is the airport code)."""

    value: str
    label: str
