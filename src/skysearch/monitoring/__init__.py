"""Logging and metrics for the search request layer."""

from skysearch.monitoring.logging_config import (
    LogContext,
    configure_logging,
    get_logger,
)
from skysearch.monitoring.metrics import (
    MetricsServer,
    track_api_request,
    track_attempt,
    track_backend_call,
    track_network_status,
    track_retry,
    track_state_transition,
    track_terminal_error,
)

__all__ = [
    "LogContext",
    "MetricsServer",
    "configure_logging",
    "get_logger",
    "track_api_request",
    "track_attempt",
    "track_backend_call",
    "track_network_status",
    "track_retry",
    "track_state_transition",
    "track_terminal_error",
]
