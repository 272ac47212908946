"""Transport abstraction: issue one network request, get a raw response."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from skysearch.resilience.signals import CancellationSignal


@dataclass
class RawResponse:
    """Response of a single backend call.

    Attributes:
        status_code: HTTP status code.
        headers: Response headers.
        data: Decoded body (JSON when possible, text otherwise).
        elapsed_ms: Time the call took.
    """

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Any = None
    elapsed_ms: int | None = None

    @property
    def is_error(self) -> bool:
        """Whether the status code signals a failure."""
        return self.status_code >= 400

    def error_message(self) -> str:
        """Extract a short message from an error body."""
        if isinstance(self.data, dict):
            message = self.data.get("message") or self.data.get("error")
            if message:
                return str(message)
        if isinstance(self.data, str) and self.data.strip():
            return self.data.strip()[:200]
        return f"HTTP {self.status_code}"


@runtime_checkable
class Transport(Protocol):
    """Protocol for the network collaborator.

    Implementations only report what happened on the wire. Error statuses are
    returned as responses, connection problems are raised.
    """

    async def perform_request(
        self,
        endpoint: str,
        payload: Any,
        signal: CancellationSignal,
        timeout: float,
    ) -> RawResponse:
        """Perform one request.

        Args:
            endpoint: Endpoint path or URL.
            payload: JSON payload; None issues a GET.
            signal: Abort signal for the call.
            timeout: Deadline for the call in seconds.

        Returns:
            The raw response.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the transport."""
        ...
