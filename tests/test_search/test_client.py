"""Tests for the flight search client and the airport directory."""

from datetime import date

import pytest

from skysearch.config import Settings
from skysearch.exceptions import TerminalError
from skysearch.resilience.errors import ErrorKind
from skysearch.search.airports import AirportDirectory
from skysearch.search.client import FlightSearchClient
from skysearch.search.models import SearchParams
from skysearch.transport.base import RawResponse
from skysearch.transport.http import HttpTransport

AIRPORTS = [
    {"code": "DEL", "city": "Delhi", "country": "India"},
    {"code": "BOM", "city": "Mumbai", "country": "India"},
    {"code": "LHR", "city": "London", "country": "United Kingdom"},
    {"city": "Nowhere"},
]


class TestFlightSearchClient:
    """Tests for FlightSearchClient."""

    @pytest.mark.asyncio
    async def test_search_sends_payload(self, make_transport, make_client, search_params, flight_payload):
        transport = make_transport(RawResponse(200, data={"flights": [flight_payload]}))
        client = make_client(transport)

        result = await client.search_flights(search_params)

        assert transport.calls[0]["endpoint"] == "/searchFlights"
        assert transport.calls[0]["payload"] == {
            "from": "DEL",
            "to": "BOM",
            "date": "2024-12-01",
            "passengers": 1,
            "returnDate": None,
        }
        assert [f.flight_number for f in result.flights] == ["AI-101"]
        assert result.attempts_used == 1
        assert not result.was_retried

    @pytest.mark.asyncio
    async def test_search_retries_server_errors(self, make_transport, make_client, search_params, flight_payload):
        transport = make_transport(
            RawResponse(500),
            RawResponse(503),
            RawResponse(200, data=[flight_payload]),
        )
        client = make_client(transport)
        attempts = []

        result = await client.search_flights(search_params, on_attempt=lambda n, c: attempts.append(n))

        assert result.attempts_used == 3
        assert result.was_retried
        assert attempts == [1, 2]
        assert len(transport.calls) == 3

    @pytest.mark.asyncio
    async def test_search_empty_result(self, make_transport, make_client, search_params):
        client = make_client(make_transport(RawResponse(200, data=[])))

        result = await client.search_flights(search_params)

        assert result.is_empty()

    @pytest.mark.asyncio
    async def test_search_terminal_error(self, make_transport, make_client, search_params):
        client = make_client(make_transport(RawResponse(400, data={"message": "Invalid route"})))

        with pytest.raises(TerminalError) as exc_info:
            await client.search_flights(search_params)

        assert exc_info.value.kind == ErrorKind.CLIENT_ERROR
        assert "Invalid route" in exc_info.value.last_message

    @pytest.mark.asyncio
    async def test_per_call_timeout_is_passed(self, make_transport, make_client, search_params):
        transport = make_transport(RawResponse(200, data=[]))
        client = make_client(transport, timeout=2.5)

        await client.search_flights(search_params)

        assert transport.calls[0]["timeout"] == 2.5

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, make_transport, make_client, search_params, hang, flight_payload):
        transport = make_transport(hang, RawResponse(200, data=[flight_payload]))
        client = make_client(transport, timeout=0.02)

        result = await client.search_flights(search_params)

        assert result.attempts_used == 2
        assert result.attempts[0].error_kind == ErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_return_search_reverses_route(self, make_transport, make_client):
        transport = make_transport(RawResponse(200, data=[]))
        client = make_client(transport)
        params = SearchParams("DEL", "BOM", date(2024, 12, 1), passengers=2, return_date=date(2024, 12, 8))

        await client.search_return_flights(params)

        payload = transport.calls[0]["payload"]
        assert (payload["from"], payload["to"], payload["date"]) == ("BOM", "DEL", "2024-12-08")
        assert payload["passengers"] == 2
        assert payload["returnDate"] is None

    @pytest.mark.asyncio
    async def test_failed_return_search_yields_no_flights(self, make_transport, make_client):
        client = make_client(make_transport(RawResponse(503)))
        params = SearchParams("DEL", "BOM", date(2024, 12, 1), return_date=date(2024, 12, 8))

        result = await client.search_return_flights(params)

        assert result.is_empty()
        assert result.attempts_used == 3

    @pytest.mark.asyncio
    async def test_failed_return_search_can_raise(self, make_transport, make_client):
        client = make_client(make_transport(RawResponse(503)))
        params = SearchParams("DEL", "BOM", date(2024, 12, 1), return_date=date(2024, 12, 8))

        with pytest.raises(TerminalError):
            await client.search_return_flights(params, empty_on_failure=False)

    @pytest.mark.asyncio
    async def test_return_search_requires_return_date(self, make_transport, make_client, search_params):
        client = make_client(make_transport(RawResponse(200, data=[])))

        with pytest.raises(ValueError):
            await client.search_return_flights(search_params)

    @pytest.mark.asyncio
    async def test_fetch_airports(self, make_transport, make_client):
        transport = make_transport(RawResponse(200, data=AIRPORTS))
        client = make_client(transport)

        airports = await client.fetch_airports()

        assert transport.calls[0]["endpoint"] == "/getAirports"
        assert transport.calls[0]["payload"] is None
        assert [a.code for a in airports] == ["DEL", "BOM", "LHR"]

    @pytest.mark.asyncio
    async def test_close_closes_transport(self, make_transport, make_client):
        transport = make_transport(RawResponse(200))
        client = make_client(transport)

        await client.close()

        assert transport.closed

    def test_from_settings(self):
        settings = Settings()

        client = FlightSearchClient.from_settings(settings)

        assert isinstance(client.transport, HttpTransport)
        assert client.policy.max_attempts == settings.retry.max_attempts
        assert client.per_call_timeout == settings.search.per_call_timeout_ms / 1000


class TestAirportDirectory:
    """Tests for AirportDirectory."""

    @pytest.mark.asyncio
    async def test_load_and_filter(self, make_transport, make_client):
        directory = AirportDirectory(make_client(make_transport(RawResponse(200, data=AIRPORTS))))

        options = await directory.load()

        assert directory.loaded
        assert [o.value for o in options] == ["DEL", "BOM", "LHR"]
        assert options[0].label == "Delhi (DEL) India"
        assert [o.value for o in directory.filter("india")] == ["DEL", "BOM"]
        assert [o.value for o in directory.filter("lhr")] == ["LHR"]
        assert len(directory.filter("  ")) == 3

    @pytest.mark.asyncio
    async def test_loads_once(self, make_transport, make_client):
        transport = make_transport(RawResponse(200, data=AIRPORTS))
        directory = AirportDirectory(make_client(transport))

        await directory.load()
        await directory.load()
        await directory.load(force=True)

        assert len(transport.calls) == 2

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_empty(self, make_transport, make_client):
        directory = AirportDirectory(make_client(make_transport(RawResponse(403))))

        options = await directory.load()

        assert options == []
        assert not directory.loaded

    @pytest.mark.asyncio
    async def test_get(self, make_transport, make_client):
        directory = AirportDirectory(make_client(make_transport(RawResponse(200, data=AIRPORTS))))
        await directory.load()

        assert directory.get("bom").city == "Mumbai"
        assert directory.get("XYZ") is None
