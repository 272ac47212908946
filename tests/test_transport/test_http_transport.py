"""Tests for the httpx transport."""

import json

import httpx
import pytest

from skysearch.exceptions import RequestCancelledError
from skysearch.resilience.signals import CancellationSignal
from skysearch.transport.base import RawResponse, Transport
from skysearch.transport.http import HttpTransport


def make_transport(handler, token: str = "") -> tuple[HttpTransport, httpx.AsyncClient]:
    client = httpx.AsyncClient(base_url="https://api.example.com", transport=httpx.MockTransport(handler))
    return HttpTransport("https://api.example.com", access_token=token, client=client), client


class TestHttpTransport:
    """Tests for HttpTransport.perform_request."""

    def test_implements_protocol(self):
        assert isinstance(HttpTransport("https://api.example.com"), Transport)

    @pytest.mark.asyncio
    async def test_post_with_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=[{"flightNumber": "AI-101"}])

        transport, client = make_transport(handler, token="secret")

        response = await transport.perform_request(
            "/searchFlights", {"from": "DEL", "to": "BOM"}, CancellationSignal(), timeout=5
        )

        assert seen == {
            "method": "POST",
            "path": "/searchFlights",
            "body": {"from": "DEL", "to": "BOM"},
            "auth": "Bearer secret",
        }
        assert response.status_code == 200
        assert response.data == [{"flightNumber": "AI-101"}]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_get_without_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert "authorization" not in request.headers
            return httpx.Response(200, json=[{"code": "DEL"}])

        transport, client = make_transport(handler)

        response = await transport.perform_request("/getAirports", None, CancellationSignal(), timeout=5)

        assert response.data == [{"code": "DEL"}]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_error_status_is_returned_not_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"Retry-After": "7"}, json={"message": "Too many requests"})

        transport, client = make_transport(handler)

        response = await transport.perform_request("/searchFlights", {}, CancellationSignal(), timeout=5)

        assert response.is_error
        assert response.headers["retry-after"] == "7"
        assert response.error_message() == "Too many requests"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_text_body(self):
        transport, client = make_transport(lambda request: httpx.Response(502, text="Bad Gateway"))

        response = await transport.perform_request("/searchFlights", {}, CancellationSignal(), timeout=5)

        assert response.data == "Bad Gateway"
        assert response.error_message() == "Bad Gateway"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connection_error_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport, client = make_transport(handler)

        with pytest.raises(httpx.ConnectError):
            await transport.perform_request("/searchFlights", {}, CancellationSignal(), timeout=5)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cancelled_signal_skips_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        transport, client = make_transport(handler)
        signal = CancellationSignal()
        signal.cancel("user")

        with pytest.raises(RequestCancelledError):
            await transport.perform_request("/searchFlights", {}, signal, timeout=5)
        assert calls == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client_open(self):
        transport, client = make_transport(lambda request: httpx.Response(200))

        await transport.close()

        assert not client.is_closed
        await client.aclose()


class TestRawResponse:
    """Tests for RawResponse helpers."""

    def test_error_message_fallback(self):
        assert RawResponse(503).error_message() == "HTTP 503"

    def test_error_message_from_error_key(self):
        assert RawResponse(500, data={"error": "db down"}).error_message() == "db down"
