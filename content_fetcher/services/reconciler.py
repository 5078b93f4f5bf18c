"""Periodic refetch of stale URLs.

A record is *stale* once its ``updated_at`` is older than
``refetch_interval_hours``.  Every tick refetches all stale records, both
``success`` and ``error`` ones, so a failed URL is retried and a good one
is refreshed.  A refetch can move a record from ``success`` to ``error`` or
back; content from an earlier success is kept when a refresh fails.

:func:`refetch_stale_urls` runs a single tick.  :class:`RefetchScheduler`
runs ticks on a background thread at a fixed cadence.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass
from time import time
from typing import Callable, Optional

from content_fetcher.config import settings
from content_fetcher.db import contents, urls
from content_fetcher.db.models import UrlRecord
from content_fetcher.errors import PersistenceError
from content_fetcher.fetcher import Fetcher, FetchSuccess

logger = logging.getLogger(__name__)


@dataclass
class RefetchReport:
    total: int = 0
    succeeded: int = 0
    errored: int = 0


# ---------------------------------------------------------------------------
# Single tick
# ---------------------------------------------------------------------------

def refetch_stale_urls(
    conn: sqlite3.Connection,
    fetcher: Optional[Fetcher] = None,
    interval_hours: Optional[int] = None,
    now: Optional[int] = None,
) -> RefetchReport:
    """Refetch every record not updated within *interval_hours*.

    Records are processed one at a time.  A failure on one record marks it
    as ``error`` and moves on to the next; only a failing selection query
    ends the tick early (it is logged and an empty report is returned).

    Args:
        conn: Open, initialised DB connection.
        fetcher: Defaults to one built from the current settings.
        interval_hours: Staleness threshold.  Defaults to
            ``settings.refetch_interval_hours``.
        now: Reference Unix time for the cutoff and the written timestamps.
    """
    hours = interval_hours if interval_hours is not None else settings.refetch_interval_hours
    ts = int(now if now is not None else time())
    cutoff = ts - hours * 3600

    logger.info("Starting periodic refetch of stale URLs...")
    try:
        stale = urls.find_stale(conn, cutoff)
    except Exception:  # noqa: BLE001
        logger.exception("Error in refetch process: could not select stale URLs")
        return RefetchReport()

    if not stale:
        logger.info("No stale URLs found for refetch.")
        return RefetchReport()

    logger.info(
        "Found %d stale URL(s) to refetch (includes both successful and failed URLs).",
        len(stale),
    )

    fetcher = fetcher or Fetcher.from_settings()
    report = RefetchReport(total=len(stale))
    for record in stale:
        if _refetch_one(conn, record, fetcher, ts):
            report.succeeded += 1
        else:
            report.errored += 1

    logger.info(
        "Refetch completed. Success: %d, Failed: %d, Total: %d",
        report.succeeded,
        report.errored,
        report.total,
    )
    return report


def _refetch_one(
    conn: sqlite3.Connection,
    record: UrlRecord,
    fetcher: Fetcher,
    now: int,
) -> bool:
    """Refetch *record* and write the result back.  Returns ``True`` on success."""
    try:
        logger.info("Refetching URL: %s (last updated: %s)", record.url, record.updated_at)
        outcome = fetcher.fetch(record.url)

        if isinstance(outcome, FetchSuccess):
            _apply_success(conn, record, outcome, now)
            logger.info("Successfully refetched: %s", record.url)
            return True

        record.mark_error(outcome.error_message)
        urls.save_url(conn, record, now=now)
        logger.warning("Failed to refetch %s: %s", record.url, outcome.error_message)
        return False
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error refetching URL %s", record.url)
        record.mark_error(str(exc) or "Unknown error during refetch")
        try:
            urls.save_url(conn, record, now=now)
        except PersistenceError as db_exc:
            logger.error("Error updating URL %s in database: %s", record.url, db_exc)
        return False


def _apply_success(
    conn: sqlite3.Connection,
    record: UrlRecord,
    outcome: FetchSuccess,
    now: int,
) -> None:
    blob = contents.find_content_by_url(conn, record.url)
    if blob is not None:
        blob.content = outcome.content
        contents.save_content(conn, blob, now=now)
        content_id = blob.id
    else:
        content_id = contents.insert_content(conn, record.url, outcome.content, now=now)

    record.mark_success(
        content_id,
        redirects=outcome.redirects,
        content_type=outcome.content_type,
        content_length=outcome.content_length,
        final_url=outcome.final_url,
    )
    urls.save_url(conn, record, now=now)


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class RefetchScheduler:
    """Run :func:`refetch_stale_urls` every *interval_minutes* on a daemon thread.

    Each tick opens its own connection from *connection_factory* and closes it
    afterwards.  Ticks never overlap: :meth:`run_once` returns ``None`` when
    another tick is still in progress.
    """

    def __init__(
        self,
        connection_factory: Callable[[], sqlite3.Connection],
        *,
        interval_minutes: Optional[float] = None,
        interval_hours: Optional[int] = None,
        fetcher_factory: Callable[[], Fetcher] = Fetcher.from_settings,
    ) -> None:
        minutes = (
            interval_minutes
            if interval_minutes is not None
            else settings.refetch_check_interval_minutes
        )
        self._connection_factory = connection_factory
        self._interval = float(minutes) * 60.0
        self._interval_hours = interval_hours
        self._fetcher_factory = fetcher_factory
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            if not self._stop.is_set():
                return
            # A stopped loop still finishing its last tick; let it exit first.
            self._thread.join()
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop,), name="refetch-scheduler", daemon=True
        )
        self._thread.start()
        logger.info(
            "Automatic refetch scheduled every %.1f minutes for URLs older than %d hours",
            self._interval / 60.0,
            self._interval_hours
            if self._interval_hours is not None
            else settings.refetch_interval_hours,
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to exit and wait up to *timeout* seconds for it.

        If a tick is still running when the timeout expires, the thread is
        kept and :meth:`start` waits for it before launching a new loop.
        """
        self._stop.set()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning(
                "Refetch tick still running after %.1fs; it will exit when done.", timeout
            )
        else:
            self._thread = None

    def run_once(self) -> Optional[RefetchReport]:
        """Run a tick now unless one is already in progress."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous refetch still running; skipping this tick.")
            return None
        try:
            conn = self._connection_factory()
            try:
                return refetch_stale_urls(
                    conn,
                    fetcher=self._fetcher_factory(),
                    interval_hours=self._interval_hours,
                )
            finally:
                conn.close()
        except Exception:  # noqa: BLE001
            logger.exception("Error in refetch process")
            return None
        finally:
            self._tick_lock.release()

    def _run(self, stop: threading.Event) -> None:
        # First tick fires one full interval after start.
        while not stop.wait(self._interval):
            self.run_once()
