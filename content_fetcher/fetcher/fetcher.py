"""HTTP fetcher with a bounded, hand-rolled redirect loop and a size ceiling.

Redirects are followed by :class:`Fetcher` itself rather than by ``httpx`` so
that every hop is recorded and the hop count is capped by configuration.
The body is streamed and the transfer is aborted as soon as it grows past
``content_size_limit``.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from content_fetcher.config import settings
from content_fetcher.errors import (
    ContentTooLarge,
    MissingLocationHeader,
    NetworkError,
    TooManyRedirects,
    UnexpectedStatus,
)
from content_fetcher.fetcher.models import FetchFailure, FetchOutcome, FetchSuccess

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ContentFetcher/1.0)",
}

_CHUNK_SIZE = 64 * 1024


class Fetcher:
    """Retrieve a URL and report a :data:`FetchOutcome`.

    Args:
        max_redirects: Hops allowed before giving up.
        content_size_limit: Largest accepted body, in bytes.
        timeout: Per-request timeout in seconds.
        client: Optional shared :class:`httpx.Client`.  When omitted a client
            is opened for each :meth:`fetch` call.
    """

    def __init__(
        self,
        max_redirects: int = 5,
        content_size_limit: int = 5 * 1024 * 1024,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.max_redirects = max_redirects
        self.content_size_limit = content_size_limit
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls) -> Fetcher:
        return cls(
            max_redirects=settings.max_redirects,
            content_size_limit=settings.content_size_limit,
            timeout=settings.request_timeout,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fetch(self, url: str) -> FetchOutcome:
        """Fetch *url*, following up to ``max_redirects`` redirects.

        Never raises: every error, including transport failures, comes back
        as a :class:`FetchFailure` carrying the redirects seen so far.
        """
        redirects: List[str] = []
        try:
            if self._client is not None:
                return self._follow(self._client, url, redirects)
            with httpx.Client(headers=_DEFAULT_HEADERS, timeout=self.timeout) as client:
                return self._follow(client, url, redirects)
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            logger.warning("Error fetching URL %s: %s", url, message)
            return FetchFailure(error_message=message, redirects=redirects)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _follow(self, client: httpx.Client, url: str, redirects: List[str]) -> FetchSuccess:
        current_url = url
        redirect_count = 0

        while redirect_count <= self.max_redirects:
            logger.info("Fetching URL (attempt %d): %s", redirect_count + 1, current_url)
            try:
                with client.stream(
                    "GET",
                    current_url,
                    follow_redirects=False,
                    timeout=self.timeout,
                ) as response:
                    status = response.status_code

                    if 300 <= status < 400:
                        location = response.headers.get("location")
                        if not location:
                            raise MissingLocationHeader()
                        next_url = str(httpx.URL(current_url).join(location))
                        redirects.append(next_url)
                        if redirect_count >= self.max_redirects:
                            raise TooManyRedirects(self.max_redirects)
                        current_url = next_url
                        redirect_count += 1
                        continue

                    if not 200 <= status < 300:
                        raise UnexpectedStatus(status, response.reason_phrase)

                    body = self._read_limited(response)
                    content = body.decode(response.encoding or "utf-8", errors="replace")
                    return FetchSuccess(
                        content=content,
                        content_type=response.headers.get("content-type"),
                        content_length=len(body),
                        final_url=current_url if current_url != url else None,
                        redirects=list(redirects),
                    )
            except httpx.TimeoutException as exc:
                raise NetworkError(f"Request timed out: {current_url}") from exc
            except httpx.RequestError as exc:
                raise NetworkError(str(exc) or exc.__class__.__name__) from exc

        raise TooManyRedirects(self.max_redirects)

    def _read_limited(self, response: httpx.Response) -> bytes:
        """Read the streamed body, aborting once it exceeds the size limit."""
        limit = self.content_size_limit

        declared = response.headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > limit:
            raise ContentTooLarge(int(declared), limit)

        received = 0
        chunks: List[bytes] = []
        for chunk in response.iter_bytes(chunk_size=_CHUNK_SIZE):
            received += len(chunk)
            if received > limit:
                raise ContentTooLarge(received, limit)
            chunks.append(chunk)
        return b"".join(chunks)
