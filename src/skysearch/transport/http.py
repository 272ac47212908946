"""REST transport over httpx."""

import logging
import time
from typing import Any

import httpx

from skysearch.exceptions import RequestCancelledError
from skysearch.resilience.signals import CancellationSignal
from skysearch.transport.base import RawResponse

logger = logging.getLogger(__name__)


class HttpTransport:
    """Transport issuing JSON requests against the booking backend.

    GET is used when there is no payload, POST otherwise. Error statuses are
    returned as ``RawResponse``; httpx connection errors propagate and are
    normalised by the retry layer.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            base_url: Backend base URL.
            access_token: Optional bearer token sent with every request.
            client: Optional pre-built client (tests inject one with a mock transport).
        """
        self.base_url = base_url
        self._access_token = access_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url)

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def perform_request(
        self,
        endpoint: str,
        payload: Any,
        signal: CancellationSignal,
        timeout: float,
    ) -> RawResponse:
        """Perform one request.

        The signal is checked before sending; aborting an in-flight request is
        done by cancelling the task awaiting this coroutine.
        """
        if signal.cancelled:
            raise RequestCancelledError(signal.reason or "cancelled", endpoint=endpoint)

        start = time.time()
        if payload is None:
            response = await self._client.get(endpoint, headers=self._get_headers(), timeout=timeout)
        else:
            response = await self._client.post(
                endpoint, json=payload, headers=self._get_headers(), timeout=timeout
            )
        elapsed_ms = int((time.time() - start) * 1000)

        logger.debug(f"{response.request.method} {endpoint} -> {response.status_code} in {elapsed_ms}ms")

        return RawResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            data=self._decode(response),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    def __repr__(self) -> str:
        return f"HttpTransport(base_url={self.base_url!r})"
