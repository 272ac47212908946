"""Resilient flight search: retries, backoff, cancellation and search state."""

__version__ = "0.1.0"
