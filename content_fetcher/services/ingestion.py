"""Ingestion pipeline — store a batch of URLs.

``store_urls`` walks the batch in order:

    look up → (known: report stored state) | (new: fetch → persist → report)

A URL already in the store is never fetched again here; keeping stored
content fresh is the job of :mod:`content_fetcher.services.reconciler`.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional, Sequence

from content_fetcher.db import contents, urls
from content_fetcher.db.models import StoreResult, UrlRecord, UrlStatus, UrlView
from content_fetcher.errors import PersistenceError
from content_fetcher.fetcher import FetchFailure, Fetcher, FetchSuccess

logger = logging.getLogger(__name__)


def store_urls(
    conn: sqlite3.Connection,
    url_list: Sequence[str],
    fetcher: Optional[Fetcher] = None,
) -> StoreResult:
    """Fetch and persist every unseen URL in *url_list*.

    Args:
        conn: Open, initialised DB connection.
        url_list: URLs to store, processed one at a time in the given order.
        fetcher: Fetcher to use for unseen URLs.  Defaults to one built from
            the current settings.

    Returns:
        A :class:`~content_fetcher.db.models.StoreResult` partitioning the
        URLs into ``success`` and ``failed``, each in processing order.

    Raises:
        PersistenceError: If the store cannot be read while looking up a URL.
    """
    result = StoreResult()
    if not url_list:
        return result

    fetcher = fetcher or Fetcher.from_settings()

    for url in url_list:
        # A failing lookup means the store is down; no partial answer is useful.
        existing = urls.find_by_url(conn, url)
        try:
            if existing is not None:
                _report_existing(conn, existing, result)
            else:
                _ingest_new(conn, url, fetcher, result)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error processing URL %s", url)
            result.failed.append(_store_failure(conn, url, str(exc) or "Unknown error occurred"))

    return result


def get_all_urls(conn: sqlite3.Connection) -> list[UrlView]:
    """Return every stored URL with its content inlined, newest first."""
    return [
        UrlView.from_record(record, body, include_retained=True)
        for record, body in urls.find_all_with_content(conn)
    ]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _report_existing(
    conn: sqlite3.Connection,
    record: UrlRecord,
    result: StoreResult,
) -> None:
    logger.info("URL already exists: %s", record.url)
    if record.status is UrlStatus.ERROR:
        result.failed.append(UrlView.from_record(record))
        return

    blob = contents.get_content(conn, record.content_id) if record.content_id else None
    result.success.append(UrlView.from_record(record, blob.content if blob else None))


def _ingest_new(
    conn: sqlite3.Connection,
    url: str,
    fetcher: Fetcher,
    result: StoreResult,
) -> None:
    outcome = fetcher.fetch(url)

    if isinstance(outcome, FetchSuccess):
        result.success.append(_store_success(conn, url, outcome))
    else:
        result.failed.append(_store_failure(conn, url, outcome.error_message, outcome))


def _store_success(conn: sqlite3.Connection, url: str, outcome: FetchSuccess) -> UrlView:
    # The blob goes first so the record never points at a missing row.
    content_id = contents.insert_content(conn, url, outcome.content)
    record = urls.insert_url(
        conn,
        UrlRecord(
            id=None,
            url=url,
            status=UrlStatus.SUCCESS,
            redirects=list(outcome.redirects),
            content_type=outcome.content_type,
            content_length=outcome.content_length,
            final_url=outcome.final_url,
            content_id=content_id,
        ),
    )
    return UrlView.from_record(record, outcome.content)


def _store_failure(
    conn: sqlite3.Connection,
    url: str,
    error_message: str,
    outcome: Optional[FetchFailure] = None,
) -> UrlView:
    """Persist an ``error`` record, degrading to an unsaved view on store errors."""
    record = UrlRecord(
        id=None,
        url=url,
        status=UrlStatus.ERROR,
        error_message=error_message or "Unknown error",
        redirects=list(outcome.redirects) if outcome else [],
    )
    try:
        urls.insert_url(conn, record)
    except PersistenceError as exc:
        logger.error("Error saving failed URL %s to database: %s", url, exc)
        return UrlView(
            url=url,
            status=UrlStatus.ERROR,
            error_message=record.error_message,
            redirects=record.redirects,
        )
    return UrlView.from_record(record)
