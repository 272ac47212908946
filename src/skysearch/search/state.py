"""Search state and the transition function of the search state machine.

``transition`` is pure: given the current state and an event it returns the
next state. The orchestrator is the only caller and applies the results one
at a time.
"""

from dataclasses import dataclass, replace
from enum import Enum

from skysearch.exceptions import TerminalError
from skysearch.resilience.errors import ErrorKind
from skysearch.resilience.signals import OUTER_TIMEOUT
from skysearch.search.models import Flight


class SearchStatus(str, Enum):
    """Top-level status of a search."""

    IDLE = "idle"
    SEARCHING = "searching"
    RETRYING = "retrying"
    SUCCESS = "success"
    ERROR = "error"


class FailureReason(str, Enum):
    """User-facing cause of a failed search."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_BUSY = "server_busy"
    OFFLINE = "offline"
    NETWORK = "network"
    REJECTED = "rejected"  # non-retryable client error
    UNKNOWN = "unknown"


class RecoveryAction(str, Enum):
    """What the caller should offer after a failure."""

    RETRY = "retry"
    NEW_SEARCH = "new_search"
    WAIT = "wait"


_REASON_BY_KIND = {
    ErrorKind.TIMEOUT: FailureReason.TIMEOUT,
    ErrorKind.RATE_LIMITED: FailureReason.RATE_LIMITED,
    ErrorKind.SERVER_ERROR: FailureReason.SERVER_BUSY,
    ErrorKind.NETWORK_ERROR: FailureReason.NETWORK,
    ErrorKind.CLIENT_ERROR: FailureReason.REJECTED,
    ErrorKind.CLIENT_ERROR_RETRYABLE: FailureReason.REJECTED,
}

_ACTION_BY_REASON = {
    FailureReason.TIMEOUT: RecoveryAction.NEW_SEARCH,
    FailureReason.RATE_LIMITED: RecoveryAction.WAIT,
    FailureReason.SERVER_BUSY: RecoveryAction.WAIT,
    FailureReason.OFFLINE: RecoveryAction.WAIT,
    FailureReason.NETWORK: RecoveryAction.RETRY,
    FailureReason.REJECTED: RecoveryAction.NEW_SEARCH,
    FailureReason.UNKNOWN: RecoveryAction.RETRY,
}


def failure_reason(kind: ErrorKind, online: bool = True) -> FailureReason:
    """Map an error kind to the cause shown to the user.

    Any failure while the device is offline is reported as ``offline``.
    """
    if not online:
        return FailureReason.OFFLINE
    return _REASON_BY_KIND.get(kind, FailureReason.UNKNOWN)


def recovery_action(reason: FailureReason) -> RecoveryAction:
    return _ACTION_BY_REASON[reason]


@dataclass(frozen=True)
class SearchState:
    """Read-only projection of a search.

    Attributes:
        status: Current status.
        attempt: Attempt in flight (searching/retrying).
        max_attempts: Attempt budget of the running search.
        results: Flights of a successful search.
        message: Message of the last failure.
        attempts_used: Attempts performed by a finished search.
        exhausted: True when a failed search ran out of retryable attempts.
        error_kind: Kind of the last failure.
        reason: User-facing cause of the failure.
        action: Recommended recovery action.
        retryable: Whether the failure allows a manual retry.
        dismissed: Whether the user dismissed the error.
        suspended: Whether attempts are paused because the device is offline.
        error_id: Identifier of the error occurrence.
    """

    status: SearchStatus = SearchStatus.IDLE
    attempt: int = 0
    max_attempts: int = 0
    results: tuple[Flight, ...] = ()
    message: str | None = None
    attempts_used: int = 0
    exhausted: bool = False
    error_kind: ErrorKind | None = None
    reason: FailureReason | None = None
    action: RecoveryAction | None = None
    retryable: bool = False
    dismissed: bool = False
    suspended: bool = False
    error_id: int = 0

    @property
    def is_active(self) -> bool:
        """Whether a retry loop is running."""
        return self.status in (SearchStatus.SEARCHING, SearchStatus.RETRYING)

    @property
    def status_text(self) -> str:
        """Short progress text, e.g. ``Retry 2/3``."""
        if self.status == SearchStatus.RETRYING:
            return f"Retry {self.attempt}/{self.max_attempts}"
        if self.status == SearchStatus.SEARCHING:
            return "Searching"
        if self.status == SearchStatus.SUCCESS:
            return f"Found {len(self.results)} flight{'s' if len(self.results) != 1 else ''}"
        if self.status == SearchStatus.ERROR:
            return f"Search failed after {self.attempts_used} attempt{'s' if self.attempts_used != 1 else ''}"
        return "Idle"


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class SearchEvent:
    """Base class of state machine events."""


@dataclass(frozen=True)
class SearchStarted(SearchEvent):
    max_attempts: int
    online: bool = True


@dataclass(frozen=True)
class AttemptFailed(SearchEvent):
    """An attempt failed and another one is scheduled."""

    attempt: int
    kind: ErrorKind


@dataclass(frozen=True)
class SearchSucceeded(SearchEvent):
    results: tuple[Flight, ...]
    attempts_used: int


@dataclass(frozen=True)
class SearchFailed(SearchEvent):
    error: TerminalError
    online: bool = True
    cancel_reason: str | None = None


@dataclass(frozen=True)
class SearchCancelled(SearchEvent):
    pass


@dataclass(frozen=True)
class NetworkChanged(SearchEvent):
    online: bool


@dataclass(frozen=True)
class ErrorDismissed(SearchEvent):
    pass


def transition(state: SearchState, event: SearchEvent) -> SearchState:
    """Compute the next state.

    Events that do not apply to the current state leave it unchanged.

    Args:
        state: Current state.
        event: Event to apply.

    Returns:
        The next state (may be the same object).
    """
    if isinstance(event, SearchStarted):
        return SearchState(
            status=SearchStatus.SEARCHING,
            attempt=1,
            max_attempts=event.max_attempts,
            suspended=not event.online,
            error_id=state.error_id,
        )

    if isinstance(event, AttemptFailed):
        if not state.is_active:
            return state
        return replace(state, status=SearchStatus.RETRYING, attempt=event.attempt + 1)

    if isinstance(event, SearchSucceeded):
        if not state.is_active:
            return state
        return SearchState(
            status=SearchStatus.SUCCESS,
            results=event.results,
            attempts_used=event.attempts_used,
            max_attempts=state.max_attempts,
            error_id=state.error_id,
        )

    if isinstance(event, SearchFailed):
        if not state.is_active:
            return state
        error = event.error
        kind = error.kind
        retryable = error.retryable
        if kind == ErrorKind.CANCELLED and event.cancel_reason == OUTER_TIMEOUT:
            # The outer deadline is a timeout from the user's point of view
            kind = ErrorKind.TIMEOUT
            retryable = True
        reason = failure_reason(kind, event.online)
        return SearchState(
            status=SearchStatus.ERROR,
            message=error.last_message,
            attempts_used=error.attempts_used,
            max_attempts=state.max_attempts,
            exhausted=error.exhausted,
            error_kind=kind,
            reason=reason,
            action=recovery_action(reason),
            retryable=retryable,
            suspended=not event.online,
            error_id=state.error_id + 1,
        )

    if isinstance(event, SearchCancelled):
        return SearchState(error_id=state.error_id)

    if isinstance(event, NetworkChanged):
        return replace(state, suspended=not event.online)

    if isinstance(event, ErrorDismissed):
        if state.status != SearchStatus.ERROR:
            return state
        return replace(state, dismissed=True)

    raise TypeError(f"Unknown search event: {type(event).__name__}")
