"""Resilient request execution: classification, backoff, retries, cancellation.

The cancellable request wrapper lives in ``skysearch.resilience.request`` and
is not re-exported here because it depends on the transport package.
"""

from skysearch.resilience.backoff import BackoffCalculator
from skysearch.resilience.classifier import Classification, classify_failure
from skysearch.resilience.errors import ErrorKind, FailureInfo, normalize_failure, parse_retry_after
from skysearch.resilience.network import (
    NetworkStatus,
    NetworkStatusProvider,
    ProbeNetworkMonitor,
)
from skysearch.resilience.retry import (
    Attempt,
    AttemptOutcome,
    RetryExecutor,
    RetryPolicy,
    RetryResult,
)
from skysearch.resilience.signals import CancellationSignal

__all__ = [
    "Attempt",
    "AttemptOutcome",
    "BackoffCalculator",
    "CancellationSignal",
    "Classification",
    "ErrorKind",
    "FailureInfo",
    "NetworkStatus",
    "NetworkStatusProvider",
    "ProbeNetworkMonitor",
    "RetryExecutor",
    "RetryPolicy",
    "RetryResult",
    "classify_failure",
    "normalize_failure",
    "parse_retry_after",
]
