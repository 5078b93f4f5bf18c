"""CRUD operations for the ``urls`` table."""

from __future__ import annotations

import json
import sqlite3
from time import time
from typing import Optional

from content_fetcher.db.connection import translate_errors
from content_fetcher.db.models import UrlRecord


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_record(row: sqlite3.Row) -> UrlRecord:
    return UrlRecord(
        id=row["id"],
        url=row["url"],
        status=row["status"],
        error_message=row["error_message"],
        redirects=json.loads(row["redirects"] or "[]"),
        content_type=row["content_type"],
        content_length=row["content_length"],
        final_url=row["final_url"],
        content_id=row["content_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _now(now: Optional[int]) -> int:
    return int(now if now is not None else time())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def find_by_url(conn: sqlite3.Connection, url: str) -> Optional[UrlRecord]:
    """Fetch a single record by its exact URL string.  ``None`` if unknown."""
    with translate_errors(f"look up {url}"):
        row = conn.execute("SELECT * FROM urls WHERE url = ?", (url,)).fetchone()
    return _row_to_record(row) if row else None


def insert_url(
    conn: sqlite3.Connection,
    record: UrlRecord,
    now: Optional[int] = None,
) -> UrlRecord:
    """Insert a new record, stamping ``created_at`` / ``updated_at``.

    Raises:
        PersistenceError: If the URL already exists or the write fails.
    """
    ts = _now(now)
    with translate_errors(f"insert {record.url}"):
        with conn:
            cursor = conn.execute(
                """
                INSERT INTO urls (url, status, error_message, redirects, content_type,
                                  content_length, final_url, content_id,
                                  created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.url,
                    record.status.value,
                    record.error_message,
                    record.redirects_json(),
                    record.content_type,
                    record.content_length,
                    record.final_url,
                    record.content_id,
                    ts,
                    ts,
                ),
            )
    record.id = cursor.lastrowid
    record.created_at = ts
    record.updated_at = ts
    return record


def save_url(
    conn: sqlite3.Connection,
    record: UrlRecord,
    now: Optional[int] = None,
) -> UrlRecord:
    """Write every mutable field of an existing record.

    ``updated_at`` is always refreshed and never moves backwards.  A ``None``
    field is written as ``NULL``, which is how ``error_message`` gets cleared.

    Raises:
        PersistenceError: If the record does not exist or the write fails.
    """
    updated_at = max(record.updated_at, _now(now))
    with translate_errors(f"update {record.url}"):
        with conn:
            cursor = conn.execute(
                """
                UPDATE urls SET status = ?, error_message = ?, redirects = ?,
                                content_type = ?, content_length = ?, final_url = ?,
                                content_id = ?, updated_at = ?
                WHERE url = ?
                """,
                (
                    record.status.value,
                    record.error_message,
                    record.redirects_json(),
                    record.content_type,
                    record.content_length,
                    record.final_url,
                    record.content_id,
                    updated_at,
                    record.url,
                ),
            )
            if cursor.rowcount == 0:
                raise sqlite3.IntegrityError(f"no stored record for {record.url!r}")
    record.updated_at = updated_at
    return record


def find_all(conn: sqlite3.Connection) -> list[UrlRecord]:
    """Return every record, newest first."""
    with translate_errors("list urls"):
        rows = conn.execute(
            "SELECT * FROM urls ORDER BY created_at DESC, id DESC"
        ).fetchall()
    return [_row_to_record(r) for r in rows]


def find_all_with_content(
    conn: sqlite3.Connection,
) -> list[tuple[UrlRecord, Optional[str]]]:
    """Like :func:`find_all` but resolves each record's content in one query."""
    with translate_errors("list urls"):
        rows = conn.execute(
            """
            SELECT u.*, c.content AS body
            FROM urls u
            LEFT JOIN contents c ON c.id = u.content_id
            ORDER BY u.created_at DESC, u.id DESC
            """
        ).fetchall()
    return [(_row_to_record(r), r["body"]) for r in rows]


def find_stale(conn: sqlite3.Connection, cutoff: int) -> list[UrlRecord]:
    """Return records whose ``updated_at`` is strictly older than *cutoff*.

    Both ``success`` and ``error`` records are returned, oldest first.
    """
    with translate_errors("select stale urls"):
        rows = conn.execute(
            "SELECT * FROM urls WHERE updated_at < ? ORDER BY updated_at, id",
            (cutoff,),
        ).fetchall()
    return [_row_to_record(r) for r in rows]
