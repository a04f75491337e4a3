"""Exception hierarchy shared across discovery, fetch, extraction and delivery.

Failures fall into three groups that callers react to differently:

* transient per-item failures (``FetchError``) stay inside the worker that hit
  them and only show up in logs and batch summaries;
* batch-fatal failures (``DiscoveryError``, ``ExtractionError``) abort the
  current tick, which the coordinator records before waiting for the next one;
* configuration failures (``ConfigurationError``) stop the requested feature
  at startup.
"""

from __future__ import annotations

__all__ = [
    "ClerkTradesError",
    "ConfigurationError",
    "DiscoveryError",
    "ExtractionError",
    "FetchError",
    "NotificationError",
    "StoreError",
]

_EXCERPT_LIMIT = 500


class ClerkTradesError(RuntimeError):
    """Base exception for pipeline failures."""


class ConfigurationError(ClerkTradesError):
    """Raised when a required setting or credential is missing or invalid."""


class StoreError(ClerkTradesError):
    """Raised when a persisted JSON store cannot be read or written."""


class DiscoveryError(ClerkTradesError):
    """Raised when the listing cannot be crawled."""

    def __init__(self, message: str, *, page: int | None = None) -> None:
        if page is not None:
            message = f"page {page}: {message}"
        super().__init__(message)
        self.page = page


class FetchError(ClerkTradesError):
    """Raised when a single document cannot be retrieved."""

    def __init__(self, message: str, *, link: str | None = None) -> None:
        super().__init__(message)
        self.link = link


class ExtractionError(ClerkTradesError):
    """Raised when the extractor output cannot be turned into trade records."""

    def __init__(self, message: str, *, payload: str | None = None) -> None:
        excerpt = None
        if payload is not None:
            excerpt = payload if len(payload) <= _EXCERPT_LIMIT else payload[:_EXCERPT_LIMIT] + "…"
            message = f"{message}, output: {excerpt}"
        super().__init__(message)
        self.payload_excerpt = excerpt


class NotificationError(ClerkTradesError):
    """Raised when a report cannot be delivered."""
