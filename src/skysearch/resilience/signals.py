"""Cancellation signal shared between callers and in-flight work."""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

# Well-known cancellation reasons
SUPERSEDED = "superseded"
USER_CANCELLED = "user"
OUTER_TIMEOUT = "outer_timeout"
SHUTDOWN = "shutdown"


class CancellationSignal:
    """One-shot abort signal for asyncio code.

    The first call to ``cancel`` wins; later calls are no-ops. Listeners are
    invoked synchronously, once, when the signal fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._listeners: list[Callable[[str], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether the signal has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason passed to ``cancel``, None while not cancelled."""
        return self._reason

    def cancel(self, reason: str = USER_CANCELLED) -> bool:
        """Fire the signal.

        Args:
            reason: Why the work is being cancelled.

        Returns:
            True if this call fired the signal, False if it had already fired.
        """
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(reason)
            except Exception as e:
                logger.warning(f"Cancellation listener failed: {e}")
        return True

    def add_listener(self, listener: Callable[[str], None]) -> Callable[[], None]:
        """Register a listener called with the reason when the signal fires.

        If the signal already fired the listener is called immediately.

        Returns:
            Function removing the listener.
        """
        if self._event.is_set():
            listener(self._reason or USER_CANCELLED)
            return lambda: None

        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def wait(self) -> str:
        """Wait until the signal fires and return the reason."""
        await self._event.wait()
        return self._reason or USER_CANCELLED

    async def sleep(self, seconds: float) -> bool:
        """Sleep unless the signal fires first.

        Args:
            seconds: How long to sleep.

        Returns:
            True if the signal fired before the sleep finished.
        """
        if self._event.is_set():
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(seconds, 0.0))
        except asyncio.TimeoutError:
            return False
        return True

    def child(self) -> "CancellationSignal":
        """Create a signal that fires whenever this one fires.

        Cancelling the child does not affect the parent.
        """
        child = CancellationSignal()
        remove = self.add_listener(child.cancel)
        child.add_listener(lambda _reason: remove())
        return child

    def __repr__(self) -> str:
        return f"CancellationSignal(cancelled={self.cancelled}, reason={self._reason!r})"
