"""HTTP route handler for flight searches."""

from skysearch.api.graphql import SEARCH_FLIGHTS_QUERY, GraphQLFlightClient
from skysearch.api.server import SearchApiServer, create_app

__all__ = [
    "GraphQLFlightClient",
    "SEARCH_FLIGHTS_QUERY",
    "SearchApiServer",
    "create_app",
]
