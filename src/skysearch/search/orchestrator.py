"""Search orchestrator: the caller-facing state machine.

Owns the current ``SearchState`` and the single active retry loop. Every
state change goes through ``_dispatch``, which drops events coming from a
loop that has been superseded or cancelled.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

from skysearch.config import SearchSettings
from skysearch.exceptions import InvalidTransitionError, SearchValidationError, TerminalError
from skysearch.monitoring.logging_config import LogContext
from skysearch.monitoring.metrics import track_state_transition
from skysearch.resilience.classifier import Classification
from skysearch.resilience.network import NetworkStatus, NetworkStatusProvider
from skysearch.resilience.signals import (
    OUTER_TIMEOUT,
    SHUTDOWN,
    SUPERSEDED,
    USER_CANCELLED,
    CancellationSignal,
)
from skysearch.search.client import FlightSearchClient
from skysearch.search.models import SearchParams
from skysearch.search.state import (
    AttemptFailed,
    ErrorDismissed,
    NetworkChanged,
    SearchCancelled,
    SearchEvent,
    SearchFailed,
    SearchStarted,
    SearchState,
    SearchStatus,
    SearchSucceeded,
    transition,
)
from skysearch.search.validation import validate_search_params

logger = logging.getLogger(__name__)

StateListener = Callable[[SearchState], None]


class SearchOrchestrator:
    """Runs flight searches and exposes their state.

    Example:
        orchestrator = SearchOrchestrator(client, network)
        orchestrator.subscribe(render)
        final_state = await orchestrator.start_search(params)
    """

    def __init__(
        self,
        client: FlightSearchClient,
        network: NetworkStatusProvider | None = None,
        settings: SearchSettings | None = None,
        today: Callable[[], date] | date | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Flight search client.
            network: Network status provider. Assumed always online if not provided.
            settings: Search settings. Uses defaults if not provided.
            today: Reference date (or factory) for the "not in the past" check.
        """
        self._client = client
        self._network = network or NetworkStatus(online=True)
        self._settings = settings or SearchSettings()
        self._today = today

        self._state = SearchState()
        self._generation = 0
        self._signal: CancellationSignal | None = None
        self._task: asyncio.Task[SearchState] | None = None
        self._params: SearchParams | None = None
        self._listeners: list[StateListener] = []

        self._online = asyncio.Event()
        if self._network.is_online:
            self._online.set()
        self._guard_task: asyncio.Task[None] | None = None
        self._pending_submit: asyncio.Task[SearchState] | None = None
        self._auto_resumed_error_id: int | None = None
        self._unsubscribe_network = self._network.subscribe(self._on_network_change)

    @property
    def state(self) -> SearchState:
        """Current state snapshot."""
        return self._state

    @property
    def last_params(self) -> SearchParams | None:
        """Validated parameters of the most recent search."""
        return self._params

    @property
    def max_attempts(self) -> int:
        return self._client.policy.max_attempts

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with every new state.

        Returns:
            Function removing the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Actions
    # =========================================================================

    def start_search(self, params: SearchParams | Mapping[str, Any]) -> asyncio.Task[SearchState]:
        """Validate input and start a new search.

        A search already in flight is cancelled first and its late results
        are ignored.

        Args:
            params: Search input.

        Returns:
            Task resolving to the state the search finished in.

        Raises:
            SearchValidationError: If the input is invalid or the device is
                offline. The state is left untouched.
        """
        validated = validate_search_params(
            params,
            today=self._reference_date(),
            max_passengers=self._settings.max_passengers,
        )
        self._ensure_online()
        return self._launch(validated)

    def submit_search(self, params: SearchParams | Mapping[str, Any]) -> asyncio.Task[SearchState]:
        """Throttled ``start_search`` for repeated form submissions.

        The search starts once no other submission arrives for
        ``submit_throttle_ms``. A newer submission cancels the pending one.

        Args:
            params: Search input.

        Returns:
            Task resolving to the state the search finished in.

        Raises:
            SearchValidationError: If the input is invalid or the device is
                offline.
        """
        validated = validate_search_params(
            params,
            today=self._reference_date(),
            max_passengers=self._settings.max_passengers,
        )
        self._ensure_online()
        self._cancel_pending_submit()
        task = asyncio.get_running_loop().create_task(self._submit_later(validated))
        self._pending_submit = task
        return task

    def retry_now(self) -> asyncio.Task[SearchState]:
        """Start the failed search again with a fresh attempt budget.

        Raises:
            InvalidTransitionError: If there is no failed search, or it failed
                with a non-retryable error.
            SearchValidationError: If the device is offline.
        """
        if self._state.status != SearchStatus.ERROR or self._params is None:
            raise InvalidTransitionError(f"Cannot retry from state '{self._state.status.value}'")
        if not self._state.retryable:
            raise InvalidTransitionError(
                f"Cannot retry a search that failed with '{self._state.error_kind.value}'"
            )
        self._ensure_online()
        logger.info("Manual retry requested")
        return self._launch(self._params)

    def cancel_search(self) -> None:
        """Cancel the active search and return to idle."""
        self._cancel_pending_submit()
        self._cancel_guard()
        self._generation += 1
        if self._signal is not None:
            self._signal.cancel(USER_CANCELLED)
            self._signal = None
        self._dispatch(self._generation, SearchCancelled())

    def dismiss_error(self) -> None:
        """Hide the current error; it will no longer resume automatically."""
        self._cancel_guard()
        self._dispatch(self._generation, ErrorDismissed())

    async def close(self) -> None:
        """Stop the active search and detach from the network provider."""
        self._unsubscribe_network()
        self._cancel_pending_submit()
        self._cancel_guard()
        self._generation += 1
        if self._signal is not None:
            self._signal.cancel(SHUTDOWN)
            self._signal = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Search orchestrator closed")

    # =========================================================================
    # Internals
    # =========================================================================

    def _reference_date(self) -> date | None:
        if callable(self._today):
            return self._today()
        return self._today

    def _ensure_online(self) -> None:
        if not self._network.is_online:
            raise SearchValidationError("You appear to be offline", field="network")

    def _launch(self, params: SearchParams) -> asyncio.Task[SearchState]:
        self._cancel_guard()
        if self._signal is not None:
            self._signal.cancel(SUPERSEDED)

        self._generation += 1
        generation = self._generation
        signal = CancellationSignal()
        self._signal = signal
        self._params = params

        self._dispatch(generation, SearchStarted(max_attempts=self.max_attempts, online=self._network.is_online))
        started = self._state
        task = asyncio.get_running_loop().create_task(self._run(generation, params, signal, started))
        self._task = task
        return task

    async def _run(
        self,
        generation: int,
        params: SearchParams,
        signal: CancellationSignal,
        started: SearchState,
    ) -> SearchState:
        """Run one search loop.

        Returns:
            The shared state while this search is still current, otherwise
            the state this search alone would have produced.
        """
        own = started

        def record(event: SearchEvent) -> None:
            nonlocal own
            own = transition(own, event)
            self._dispatch(generation, event)

        loop = asyncio.get_running_loop()
        timer = None
        if self._settings.outer_timeout_ms:
            timer = loop.call_later(self._settings.outer_timeout_ms / 1000, signal.cancel, OUTER_TIMEOUT)

        def on_attempt(attempt: int, classification: Classification) -> None:
            record(AttemptFailed(attempt=attempt, kind=classification.kind))

        async def before_attempt() -> None:
            await self._wait_until_online(signal)

        try:
            with LogContext(search_generation=generation, route=f"{params.origin}-{params.destination}"):
                result = await self._client.search_flights(
                    params,
                    signal=signal,
                    on_attempt=on_attempt,
                    before_attempt=before_attempt,
                )
        except TerminalError as e:
            if signal.reason in (USER_CANCELLED, SHUTDOWN):
                record(SearchCancelled())
            else:
                record(SearchFailed(error=e, online=self._network.is_online, cancel_reason=signal.reason))
        else:
            record(SearchSucceeded(results=tuple(result.flights), attempts_used=result.attempts_used))
        finally:
            if timer is not None:
                timer.cancel()
            if self._signal is signal:
                self._signal = None

        if generation == self._generation:
            return self._state
        return own

    async def _wait_until_online(self, signal: CancellationSignal) -> None:
        """Suspend the next attempt until the network is back or the search is cancelled."""
        if self._online.is_set():
            return

        logger.info("Network offline, suspending search until it is back")
        online = asyncio.ensure_future(self._online.wait())
        cancelled = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({online, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (online, cancelled):
                waiter.cancel()

    def _on_network_change(self, online: bool) -> None:
        if online:
            self._online.set()
        else:
            self._online.clear()
            self._cancel_guard()

        self._dispatch(self._generation, NetworkChanged(online=online))

        if online and self._should_auto_resume():
            self._guard_task = asyncio.get_running_loop().create_task(
                self._auto_resume(self._state.error_id)
            )

    def _should_auto_resume(self) -> bool:
        state = self._state
        return (
            state.status == SearchStatus.ERROR
            and not state.dismissed
            and state.retryable
            and self._params is not None
            and state.error_id != self._auto_resumed_error_id
            and (self._guard_task is None or self._guard_task.done())
        )

    async def _auto_resume(self, error_id: int) -> None:
        guard = self._settings.auto_retry_guard_ms / 1000
        logger.info(f"Network is back, resuming search in {guard:.1f}s")
        await asyncio.sleep(guard)

        state = self._state
        if state.status != SearchStatus.ERROR or state.dismissed or state.error_id != error_id:
            return
        if not self._network.is_online or self._params is None:
            return

        self._auto_resumed_error_id = error_id
        self._guard_task = None
        logger.info("Resuming failed search after reconnect")
        self._launch(self._params)

    async def _submit_later(self, params: SearchParams) -> SearchState:
        await asyncio.sleep(self._settings.submit_throttle_ms / 1000)
        self._pending_submit = None
        self._ensure_online()
        return await asyncio.shield(self._launch(params))

    def _cancel_pending_submit(self) -> None:
        task, self._pending_submit = self._pending_submit, None
        if task is not None and not task.done():
            task.cancel()

    def _cancel_guard(self) -> None:
        task, self._guard_task = self._guard_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _dispatch(self, generation: int, event: SearchEvent) -> bool:
        """Apply an event if it belongs to the current search.

        Returns:
            True if the state changed.
        """
        if generation != self._generation:
            logger.debug(f"Ignoring {type(event).__name__} from stale search {generation}")
            return False

        previous = self._state
        state = transition(previous, event)
        if state == previous:
            return False

        self._state = state
        if state.status != previous.status:
            track_state_transition(state.status.value)
            logger.info(f"Search state {previous.status.value} -> {state.status.value} ({state.status_text})")

        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"Search state listener failed: {type(e).__name__}: {e}")
        return True
