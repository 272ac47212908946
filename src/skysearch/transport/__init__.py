"""Transports used by the request layer."""

from skysearch.transport.base import RawResponse, Transport
from skysearch.transport.http import HttpTransport

__all__ = [
    "HttpTransport",
    "RawResponse",
    "Transport",
]
