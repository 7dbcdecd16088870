"""Error types raised by the resolution pipeline."""
from __future__ import annotations


class UrlValidationError(ValueError):
    """The input is missing or is not a supported Facebook video URL (HTTP 400)."""


class FetchError(RuntimeError):
    """The source page could not be fetched.

    Covers network errors, timeouts, too many redirects and non-2xx responses.
    The orchestrator recovers from it by moving on to the next stage; it is
    never surfaced to API clients.
    """

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
