"""Prometheus metrics for the flight search request layer."""

import logging
from threading import Thread
from wsgiref.simple_server import WSGIServer

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# =============================================================================
# Backend Request Metrics
# =============================================================================

skysearch_backend_requests_total = Counter(
    "skysearch_backend_requests_total",
    "Total number of single backend calls",
    ["endpoint", "status"],  # status: success, failure, timeout, cancelled
)

skysearch_backend_request_duration_seconds = Histogram(
    "skysearch_backend_request_duration_seconds",
    "Time spent on single backend calls",
    ["endpoint"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 45.0],
)

# =============================================================================
# Retry Metrics
# =============================================================================

skysearch_attempts_total = Counter(
    "skysearch_attempts_total",
    "Total number of attempts performed by retry loops",
    ["operation", "outcome"],
)

skysearch_retries_total = Counter(
    "skysearch_retries_total",
    "Total number of scheduled retries",
    ["operation", "kind"],  # Error kind that triggered the retry
)

skysearch_terminal_errors_total = Counter(
    "skysearch_terminal_errors_total",
    "Retry loops that ended with a terminal error",
    ["operation", "kind"],
)

skysearch_backoff_delay_seconds = Histogram(
    "skysearch_backoff_delay_seconds",
    "Backoff delay inserted before a retry",
    ["operation"],
    buckets=[0.5, 1.0, 2.0, 4.0, 8.0, 16.0, 30.0],
)

# =============================================================================
# Search Metrics
# =============================================================================

skysearch_state_transitions_total = Counter(
    "skysearch_state_transitions_total",
    "Search state machine transitions by target status",
    ["status"],
)

skysearch_network_online = Gauge(
    "skysearch_network_online",
    "Network availability as seen by the search layer (1=online, 0=offline)",
)

skysearch_api_requests_total = Counter(
    "skysearch_api_requests_total",
    "Requests handled by the search route handler",
    ["route", "status_code"],
)


def track_backend_call(endpoint: str, status: str, duration: float) -> None:
    """Record the outcome of a single backend call.

    Args:
        endpoint: The endpoint that was called.
        status: success, failure, timeout or cancelled.
        duration: Call duration in seconds.
    """
    skysearch_backend_requests_total.labels(endpoint=endpoint, status=status).inc()
    skysearch_backend_request_duration_seconds.labels(endpoint=endpoint).observe(duration)


def track_attempt(operation: str, outcome: str) -> None:
    """Count one attempt of a retry loop."""
    skysearch_attempts_total.labels(operation=operation, outcome=outcome).inc()


def track_retry(operation: str, kind: str, delay_ms: float) -> None:
    """Count a scheduled retry and observe its backoff delay.

    Args:
        operation: Name of the retried operation.
        kind: Error kind that triggered the retry.
        delay_ms: Backoff delay in milliseconds.
    """
    skysearch_retries_total.labels(operation=operation, kind=kind).inc()
    skysearch_backoff_delay_seconds.labels(operation=operation).observe(delay_ms / 1000)


def track_terminal_error(operation: str, kind: str) -> None:
    """Count a retry loop that ended with a terminal error."""
    skysearch_terminal_errors_total.labels(operation=operation, kind=kind).inc()


def track_state_transition(status: str) -> None:
    skysearch_state_transitions_total.labels(status=status).inc()


def track_network_status(online: bool) -> None:
    skysearch_network_online.set(1 if online else 0)


def track_api_request(route: str, status_code: int) -> None:
    skysearch_api_requests_total.labels(route=route, status_code=str(status_code)).inc()


class MetricsServer:
    """Server for exposing Prometheus metrics."""

    def __init__(self, port: int = 8000) -> None:
        """Initialize the metrics server.

        Args:
            port: The port to expose metrics on.
        """
        self.port = port
        self._server: WSGIServer | None = None
        self._thread: Thread | None = None

    @property
    def bound_port(self) -> int | None:
        """Port the server listens on, None while stopped."""
        if self._server is None:
            return None
        return self._server.server_port

    def start(self) -> None:
        """Start serving metrics from a background thread."""
        if self._server is not None:
            logger.warning("Metrics server is already running")
            return

        try:
            self._server, self._thread = start_http_server(self.port)
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return
        logger.info(f"Metrics server started on port {self.bound_port}")

    def stop(self) -> None:
        """Shut the server down and wait for its thread to exit."""
        server, self._server = self._server, None
        thread, self._thread = self._thread, None
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(timeout=5)
        logger.info("Metrics server stopped")
