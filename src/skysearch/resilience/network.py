"""Network availability providers.

The search layer never listens to the environment directly; it receives a
``NetworkStatusProvider`` and subscribes to it. Providers notify listeners on
the event loop thread.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import httpx

from skysearch.monitoring.metrics import track_network_status

logger = logging.getLogger(__name__)

NetworkListener = Callable[[bool], None]


@runtime_checkable
class NetworkStatusProvider(Protocol):
    """Protocol for online/offline providers."""

    @property
    def is_online(self) -> bool:
        """Current availability."""
        ...

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register a listener called with the new value on every change.

        Returns:
            Function removing the listener.
        """
        ...


class NetworkStatus:
    """Settable network status, notifying listeners on change only."""

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[NetworkListener] = []
        track_network_status(online)

    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Update the status and notify listeners if it changed."""
        if online == self._online:
            return
        self._online = online
        track_network_status(online)
        logger.info(f"Network is now {'online' if online else 'offline'}")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception as e:
                logger.warning(f"Network listener failed: {type(e).__name__}: {e}")

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class ProbeNetworkMonitor(NetworkStatus):
    """Network status driven by periodically probing a URL.

    Any HTTP response counts as online; transport errors count as offline.
    """

    def __init__(
        self,
        probe_url: str,
        interval: float = 15.0,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            probe_url: URL to probe.
            interval: Seconds between probes.
            timeout: Timeout of a single probe in seconds.
            client: Optional pre-built client.
        """
        super().__init__(online=True)
        self.probe_url = probe_url
        self.interval = interval
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._task: asyncio.Task[None] | None = None

    async def probe(self) -> bool:
        """Probe once and update the status.

        Returns:
            The new availability.
        """
        try:
            await self._client.head(self.probe_url, timeout=self.timeout)
            online = True
        except httpx.TransportError as e:
            logger.debug(f"Connectivity probe failed: {type(e).__name__}: {e}")
            online = False
        self.set_online(online)
        return online

    def start(self) -> None:
        """Start probing in the background."""
        if self._task is not None and not self._task.done():
            logger.warning("Network monitor is already running")
            return

        async def probe_loop() -> None:
            while True:
                await self.probe()
                await asyncio.sleep(self.interval)

        self._task = asyncio.get_running_loop().create_task(probe_loop())

    async def stop(self) -> None:
        """Stop probing and release the client."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_client:
            await self._client.aclose()
