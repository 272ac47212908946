"""Airport directory backing the origin/destination pickers."""

import logging

from skysearch.exceptions import TerminalError
from skysearch.search.client import FlightSearchClient
from skysearch.search.models import Airport, AirportOption

logger = logging.getLogger(__name__)


class AirportDirectory:
    """Loads airports once and filters selectable options.

    A failed lookup is not fatal: the directory falls back to an empty list
    and can be reloaded later.
    """

    def __init__(self, client: FlightSearchClient) -> None:
        self._client = client
        self._airports: list[Airport] = []
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self, force: bool = False) -> list[AirportOption]:
        """Fetch airports unless already loaded.

        Args:
            force: Fetch again even if already loaded.

        Returns:
            All airport options.
        """
        if self._loaded and not force:
            return self.options()

        try:
            self._airports = await self._client.fetch_airports()
            self._loaded = True
            logger.info(f"Loaded {len(self._airports)} airports")
        except TerminalError as e:
            logger.warning(f"Error fetching airports, falling back to empty list: {e}")
            self._airports = []
            self._loaded = False

        return self.options()

    def options(self) -> list[AirportOption]:
        return [AirportOption(value=a.code, label=a.label) for a in self._airports]

    def filter(self, text: str) -> list[AirportOption]:
        """Return options whose label contains the text, case-insensitively."""
        options = self.options()
        text = text.strip().lower()
        if not text:
            return options
        return [option for option in options if text in option.label.lower()]

    def get(self, code: str) -> Airport | None:
        code = code.strip().upper()
        for airport in self._airports:
            if airport.code.upper() == code:
                return airport
        return None
