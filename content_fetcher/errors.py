"""Exception hierarchy for the content fetcher.

Fetch errors never leave :class:`~content_fetcher.fetcher.Fetcher`; they are
turned into a :class:`~content_fetcher.fetcher.models.FetchFailure` whose
``error_message`` is ``str(exc)``.  :class:`PersistenceError` is raised by the
``db`` layer whenever SQLite fails.
"""

from __future__ import annotations


class ContentFetcherError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------

class FetchError(ContentFetcherError):
    """A single URL could not be retrieved."""


class NetworkError(FetchError):
    """DNS failure, refused / reset connection or timeout."""


class MissingLocationHeader(FetchError):
    def __init__(self) -> None:
        super().__init__("Redirect response without Location header")


class TooManyRedirects(FetchError):
    def __init__(self, max_redirects: int) -> None:
        self.max_redirects = max_redirects
        super().__init__(f"Too many redirects (max: {max_redirects})")


class ContentTooLarge(FetchError):
    def __init__(self, actual: int, limit: int) -> None:
        self.actual = actual
        self.limit = limit
        super().__init__(
            f"Content size ({actual} bytes) exceeds limit ({limit} bytes)"
        )


class UnexpectedStatus(FetchError):
    """The server answered with a status outside ``[200, 400)``."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        message = f"HTTP {status_code} {reason}".rstrip()
        super().__init__(message)


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class PersistenceError(ContentFetcherError):
    """The record store is unavailable or rejected a write."""
