"""Tests for the cancellable request wrapper."""

import asyncio

import httpx
import pytest

from skysearch.exceptions import RequestCancelledError, RequestTimeoutError, TransportError
from skysearch.resilience.errors import ErrorKind
from skysearch.resilience.request import CancellableRequest
from skysearch.resilience.signals import CancellationSignal
from skysearch.transport.base import RawResponse


class TestCancellableRequest:
    """Tests for CancellableRequest.call."""

    @pytest.mark.asyncio
    async def test_success(self, make_transport):
        transport = make_transport(RawResponse(200, data=[{"flightNumber": "AI-101"}]))
        request = CancellableRequest(transport)

        outcome = await request.call("/searchFlights", {"from": "DEL"}, timeout=1)

        assert outcome.ok
        assert outcome.kind is None
        assert outcome.unwrap().data == [{"flightNumber": "AI-101"}]
        assert transport.calls[0]["payload"] == {"from": "DEL"}

    @pytest.mark.asyncio
    async def test_error_status_becomes_transport_error(self, make_transport):
        transport = make_transport(RawResponse(404, data={"message": "No route"}))
        request = CancellableRequest(transport)

        outcome = await request.call("/searchFlights", {}, timeout=1)

        assert not outcome.ok
        assert isinstance(outcome.error, TransportError)
        assert outcome.error.status_code == 404
        assert outcome.kind == ErrorKind.CLIENT_ERROR
        with pytest.raises(TransportError):
            outcome.unwrap()

    @pytest.mark.asyncio
    async def test_headers_are_kept(self, make_transport):
        transport = make_transport(RawResponse(429, headers={"Retry-After": "3"}))
        request = CancellableRequest(transport)

        outcome = await request.call("/searchFlights", {}, timeout=1)

        assert outcome.error.headers == {"Retry-After": "3"}
        assert outcome.kind == ErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_raised_error_is_returned(self, make_transport):
        request_obj = httpx.Request("POST", "https://example.com/searchFlights")
        transport = make_transport(httpx.ConnectError("refused", request=request_obj))
        request = CancellableRequest(transport)

        outcome = await request.call("/searchFlights", {}, timeout=1)

        assert isinstance(outcome.error, httpx.ConnectError)
        assert outcome.kind == ErrorKind.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_timeout(self, make_transport, hang):
        transport = make_transport(hang)
        request = CancellableRequest(transport)

        outcome = await request.call("/searchFlights", {}, timeout=0.02)

        assert isinstance(outcome.error, RequestTimeoutError)
        assert outcome.kind == ErrorKind.TIMEOUT
        assert transport.signals[0].cancelled

    @pytest.mark.asyncio
    async def test_external_cancel(self, make_transport, hang):
        transport = make_transport(hang)
        request = CancellableRequest(transport)
        signal = CancellationSignal()
        asyncio.get_running_loop().call_later(0.01, signal.cancel, "superseded")

        outcome = await request.call("/searchFlights", {}, timeout=5, signal=signal)

        assert isinstance(outcome.error, RequestCancelledError)
        assert outcome.error.reason == "superseded"
        assert outcome.kind == ErrorKind.CANCELLED

    @pytest.mark.asyncio
    async def test_already_cancelled_signal_skips_transport(self, make_transport):
        transport = make_transport(RawResponse(200, data=[]))
        request = CancellableRequest(transport)
        signal = CancellationSignal()
        signal.cancel("user")

        outcome = await request.call("/searchFlights", {}, signal=signal)

        assert outcome.kind == ErrorKind.CANCELLED
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_listener_released_after_call(self, make_transport):
        """Test that a finished call no longer reacts to the caller's signal."""
        transport = make_transport(RawResponse(200, data=[]))
        request = CancellableRequest(transport)
        signal = CancellationSignal()

        await request.call("/searchFlights", {}, timeout=1, signal=signal)

        assert signal._listeners == []
        assert transport.signals[0].reason == "released"

    @pytest.mark.asyncio
    async def test_default_timeout_used(self, make_transport):
        transport = make_transport(RawResponse(200))
        request = CancellableRequest(transport, default_timeout=12.5)

        await request.call("/getAirports")

        assert transport.calls[0]["timeout"] == 12.5
        assert transport.calls[0]["payload"] is None

    @pytest.mark.asyncio
    async def test_cancelling_the_caller_releases_everything(self, make_transport, hang):
        """Test that cancelling the task awaiting the call cleans up helpers and listeners."""
        transport = make_transport(hang)
        request = CancellableRequest(transport)
        signal = CancellationSignal()
        existing = asyncio.all_tasks()

        task = asyncio.ensure_future(request.call("/searchFlights", {}, timeout=5, signal=signal))
        while not transport.calls:
            await asyncio.sleep(0.001)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert signal._listeners == []
        assert not signal.cancelled
        assert transport.signals[0].cancelled
        assert asyncio.all_tasks() - existing - {task} == set()
