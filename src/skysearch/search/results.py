"""Sorting and pagination of search results."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from skysearch.search.models import Flight


class SortOption(str, Enum):
    """Supported sort criteria."""

    PRICE = "price"
    DURATION = "duration"
    DEPARTURE_TIME = "departureTime"


def sort_flights(flights: Sequence[Flight], criteria: SortOption | str = SortOption.PRICE) -> list[Flight]:
    """Return flights sorted by the given criteria.

    Unknown criteria keep the original order.
    """
    try:
        criteria = SortOption(criteria)
    except ValueError:
        return list(flights)

    if criteria == SortOption.PRICE:
        return sorted(flights, key=lambda f: f.price)
    if criteria == SortOption.DURATION:
        return sorted(flights, key=lambda f: f.duration)
    return sorted(flights, key=lambda f: f.departure_time)


@dataclass(frozen=True)
class Page:
    """One page of results."""

    items: list[Flight]
    page: int
    total_pages: int
    total_items: int


def paginate(flights: Sequence[Flight], page: int = 1, per_page: int = 5) -> Page:
    """Slice flights into a page; the page number is clamped to the valid range."""
    total_pages = max(math.ceil(len(flights) / per_page), 1)
    page = max(1, min(page, total_pages))
    start = (page - 1) * per_page
    return Page(
        items=list(flights[start:start + per_page]),
        page=page,
        total_pages=total_pages,
        total_items=len(flights),
    )
