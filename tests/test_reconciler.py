"""Tests for the stale-URL refetch pass and its scheduler.

The fetcher is replaced by a ``MagicMock`` so each test controls exactly
which outcome a refetch produces and can assert how often it was called.
Timestamps are pinned through the ``now`` argument.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from content_fetcher.db import contents, urls
from content_fetcher.db.connection import get_connection
from content_fetcher.db.migrations import init_db
from content_fetcher.db.models import UrlRecord, UrlStatus
from content_fetcher.errors import PersistenceError
from content_fetcher.fetcher import Fetcher, FetchFailure, FetchSuccess
from content_fetcher.services.reconciler import (
    RefetchReport,
    RefetchScheduler,
    refetch_stale_urls,
)

NOW = 1_700_000_000
HOUR = 3600
STALE = NOW - 13 * HOUR
FRESH = NOW - 1 * HOUR


@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture()
def fetcher() -> MagicMock:
    return MagicMock(spec=Fetcher)


def _add_success(conn, url: str, body: str, at: int) -> UrlRecord:
    content_id = contents.insert_content(conn, url, body, now=at)
    return urls.insert_url(
        conn,
        UrlRecord(id=None, url=url, status=UrlStatus.SUCCESS, content_type="text/plain",
                  content_length=len(body), content_id=content_id),
        now=at,
    )


def _add_error(conn, url: str, message: str, at: int) -> UrlRecord:
    return urls.insert_url(
        conn,
        UrlRecord(id=None, url=url, status=UrlStatus.ERROR, error_message=message),
        now=at,
    )


def _run(conn, fetcher):
    return refetch_stale_urls(conn, fetcher=fetcher, interval_hours=12, now=NOW)


class TestSelection:
    def test_empty_tick_does_nothing(self, conn, fetcher) -> None:
        report = _run(conn, fetcher)

        assert (report.total, report.succeeded, report.errored) == (0, 0, 0)
        fetcher.fetch.assert_not_called()

    def test_fresh_records_are_skipped(self, conn, fetcher) -> None:
        _add_success(conn, "https://fresh.example/", "body", at=FRESH)
        _add_error(conn, "https://fresh-error.example/", "boom", at=FRESH)

        report = _run(conn, fetcher)

        assert report.total == 0
        fetcher.fetch.assert_not_called()

    def test_only_stale_records_are_fetched(self, conn, fetcher) -> None:
        _add_success(conn, "https://fresh.example/", "body", at=FRESH)
        _add_success(conn, "https://stale.example/", "body", at=STALE)
        fetcher.fetch.return_value = FetchSuccess("new", "text/plain", 3)

        report = _run(conn, fetcher)

        assert report.total == 1
        fetcher.fetch.assert_called_once_with("https://stale.example/")

    def test_default_interval_from_settings(self, conn, fetcher, monkeypatch) -> None:
        monkeypatch.setattr("content_fetcher.config.settings.refetch_interval_hours", 24)
        _add_success(conn, "https://stale.example/", "body", at=STALE)

        report = refetch_stale_urls(conn, fetcher=fetcher, now=NOW)

        assert report.total == 0
        fetcher.fetch.assert_not_called()

    def test_selection_failure_ends_tick_quietly(self, conn, fetcher) -> None:
        with patch(
            "content_fetcher.services.reconciler.urls.find_stale",
            side_effect=PersistenceError("store down"),
        ):
            report = _run(conn, fetcher)

        assert report.total == 0
        fetcher.fetch.assert_not_called()


class TestTransitions:
    def test_error_recovers_to_success(self, conn, fetcher) -> None:
        _add_error(conn, "https://flaky.example/", "timeout", at=STALE)
        fetcher.fetch.return_value = FetchSuccess(
            "recovered", "text/html", 9,
            final_url="https://flaky.example/home",
            redirects=["https://flaky.example/home"],
        )

        report = _run(conn, fetcher)

        assert (report.succeeded, report.errored) == (1, 0)
        record = urls.find_by_url(conn, "https://flaky.example/")
        assert record.status is UrlStatus.SUCCESS
        assert record.error_message is None
        assert record.content_type == "text/html"
        assert record.content_length == 9
        assert record.final_url == "https://flaky.example/home"
        assert record.redirects == ["https://flaky.example/home"]
        assert record.updated_at == NOW
        assert contents.get_content(conn, record.content_id).content == "recovered"

    def test_success_regresses_to_error_keeping_content(self, conn, fetcher) -> None:
        original = _add_success(conn, "https://gone.example/", "old body", at=STALE)
        fetcher.fetch.return_value = FetchFailure("HTTP 404 Not Found")

        report = _run(conn, fetcher)

        assert (report.succeeded, report.errored) == (0, 1)
        record = urls.find_by_url(conn, "https://gone.example/")
        assert record.status is UrlStatus.ERROR
        assert record.error_message == "HTTP 404 Not Found"
        assert record.content_id == original.content_id
        assert record.content_length == len("old body")
        blob = contents.get_content(conn, original.content_id)
        assert blob.content == "old body"
        assert blob.updated_at == STALE

    def test_success_overwrites_blob_in_place(self, conn, fetcher) -> None:
        original = _add_success(conn, "https://news.example/", "v1", at=STALE)
        fetcher.fetch.return_value = FetchSuccess("v2", "text/plain", 2)

        _run(conn, fetcher)

        record = urls.find_by_url(conn, "https://news.example/")
        assert record.content_id == original.content_id
        assert contents.get_content(conn, original.content_id).content == "v2"
        assert conn.execute("SELECT COUNT(*) FROM contents").fetchone()[0] == 1

    def test_redirects_cleared_when_no_longer_redirecting(self, conn, fetcher) -> None:
        content_id = contents.insert_content(conn, "https://r.example/", "x", now=STALE)
        urls.insert_url(
            conn,
            UrlRecord(id=None, url="https://r.example/", status=UrlStatus.SUCCESS,
                      content_id=content_id, redirects=["https://r.example/old"],
                      final_url="https://r.example/old"),
            now=STALE,
        )
        fetcher.fetch.return_value = FetchSuccess("y", "text/plain", 1)

        _run(conn, fetcher)

        record = urls.find_by_url(conn, "https://r.example/")
        assert record.redirects == []
        assert record.final_url is None

    def test_error_stays_error_with_new_message(self, conn, fetcher) -> None:
        _add_error(conn, "https://down.example/", "first failure", at=STALE)
        fetcher.fetch.return_value = FetchFailure("second failure")

        _run(conn, fetcher)

        record = urls.find_by_url(conn, "https://down.example/")
        assert record.status is UrlStatus.ERROR
        assert record.error_message == "second failure"
        assert record.content_id is None
        assert record.updated_at == NOW

    def test_refetched_record_is_fresh_for_next_tick(self, conn, fetcher) -> None:
        _add_error(conn, "https://down.example/", "failure", at=STALE)
        fetcher.fetch.return_value = FetchFailure("still failing")

        _run(conn, fetcher)
        fetcher.fetch.reset_mock()
        report = _run(conn, fetcher)

        assert report.total == 0
        fetcher.fetch.assert_not_called()


class TestErrorIsolation:
    def test_exception_marks_record_and_continues(self, conn, fetcher) -> None:
        _add_success(conn, "https://a.example/", "a", at=STALE - 10)
        _add_error(conn, "https://b.example/", "old", at=STALE)
        fetcher.fetch.side_effect = [
            RuntimeError("socket exploded"),
            FetchSuccess("b", "text/plain", 1),
        ]

        report = _run(conn, fetcher)

        assert (report.total, report.succeeded, report.errored) == (2, 1, 1)
        a = urls.find_by_url(conn, "https://a.example/")
        assert a.status is UrlStatus.ERROR
        assert a.error_message == "socket exploded"
        assert urls.find_by_url(conn, "https://b.example/").status is UrlStatus.SUCCESS

    def test_persistence_error_during_write_back_is_counted(self, conn, fetcher) -> None:
        _add_success(conn, "https://a.example/", "a", at=STALE)
        fetcher.fetch.return_value = FetchFailure("broken")

        with patch(
            "content_fetcher.services.reconciler.urls.save_url",
            side_effect=PersistenceError("locked"),
        ):
            report = _run(conn, fetcher)

        assert (report.total, report.errored) == (1, 1)
        # Nothing could be written, so the stored record is unchanged.
        assert urls.find_by_url(conn, "https://a.example/").status is UrlStatus.SUCCESS


class TestRefetchScheduler:
    @pytest.fixture()
    def db_path(self, tmp_path):
        path = tmp_path / "content.db"
        connection = get_connection(db_path=path)
        init_db(connection)
        _add_error(connection, "https://retry.example/", "failed once", at=int(time.time()) - 2 * HOUR)
        connection.close()
        return path

    def test_run_once_refetches_with_fresh_connection(self, db_path) -> None:
        fake = MagicMock(spec=Fetcher)
        fake.fetch.return_value = FetchSuccess("now ok", "text/plain", 6)
        scheduler = RefetchScheduler(
            lambda: get_connection(db_path=db_path),
            interval_minutes=30,
            interval_hours=1,
            fetcher_factory=lambda: fake,
        )

        report = scheduler.run_once()

        assert report is not None
        assert report.succeeded == 1
        check = get_connection(db_path=db_path)
        assert urls.find_by_url(check, "https://retry.example/").status is UrlStatus.SUCCESS
        check.close()

    def test_overlapping_tick_is_skipped(self, db_path) -> None:
        fake = MagicMock(spec=Fetcher)
        scheduler = RefetchScheduler(
            lambda: get_connection(db_path=db_path),
            interval_minutes=30,
            interval_hours=1,
            fetcher_factory=lambda: fake,
        )

        scheduler._tick_lock.acquire()
        try:
            assert scheduler.run_once() is None
        finally:
            scheduler._tick_lock.release()
        fake.fetch.assert_not_called()

    def test_connection_failure_does_not_raise(self) -> None:
        def _broken():
            raise PersistenceError("cannot open")

        scheduler = RefetchScheduler(_broken, interval_minutes=30)
        assert scheduler.run_once() is None

    def test_start_ticks_and_stop_joins(self, db_path) -> None:
        fetched = threading.Event()
        fake = MagicMock(spec=Fetcher)

        def _fetch(url):
            fetched.set()
            return FetchFailure("still down")

        fake.fetch.side_effect = _fetch
        scheduler = RefetchScheduler(
            lambda: get_connection(db_path=db_path),
            interval_minutes=0.001,
            interval_hours=1,
            fetcher_factory=lambda: fake,
        )

        scheduler.start()
        try:
            assert scheduler.running
            assert fetched.wait(timeout=5.0)
        finally:
            scheduler.stop()

        assert not scheduler.running

    def test_start_is_idempotent(self, db_path) -> None:
        scheduler = RefetchScheduler(
            lambda: get_connection(db_path=db_path),
            interval_minutes=30,
            fetcher_factory=lambda: MagicMock(spec=Fetcher),
        )
        scheduler.start()
        first_thread = scheduler._thread
        scheduler.start()
        try:
            assert scheduler._thread is first_thread
        finally:
            scheduler.stop()

    def test_restart_after_timed_out_stop_keeps_one_loop(self, db_path) -> None:
        entered = threading.Event()
        release = threading.Event()
        tick_threads: list[threading.Thread] = []

        def _slow_tick(conn, fetcher=None, interval_hours=None):
            tick_threads.append(threading.current_thread())
            entered.set()
            release.wait(timeout=5.0)
            return RefetchReport()

        scheduler = RefetchScheduler(
            lambda: get_connection(db_path=db_path),
            interval_minutes=0.001,
            fetcher_factory=lambda: MagicMock(spec=Fetcher),
        )

        with patch("content_fetcher.services.reconciler.refetch_stale_urls", _slow_tick):
            scheduler.start()
            assert entered.wait(timeout=5.0)
            old_thread = scheduler._thread

            scheduler.stop(timeout=0.05)
            # The tick is still blocked, so the old loop is kept and reported.
            assert scheduler.running
            assert scheduler._thread is old_thread

            threading.Timer(0.1, release.set).start()
            scheduler.start()
            assert not old_thread.is_alive()
            new_thread = scheduler._thread
            assert new_thread is not old_thread

            scheduler.stop(timeout=5.0)

        assert not scheduler.running
        assert not new_thread.is_alive()
        assert set(tick_threads) <= {old_thread, new_thread}
