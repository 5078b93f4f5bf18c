"""CRUD operations for the ``contents`` table."""

from __future__ import annotations

import sqlite3
from time import time
from typing import Optional

from content_fetcher.db.connection import translate_errors
from content_fetcher.db.models import ContentBlob


def _row_to_blob(row: sqlite3.Row) -> ContentBlob:
    return ContentBlob(
        id=row["id"],
        url=row["url"],
        content=row["content"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def insert_content(
    conn: sqlite3.Connection,
    url: str,
    content: str,
    now: Optional[int] = None,
) -> int:
    """Store *content* for *url* and return the blob id.

    The write is an upsert keyed by url, so a concurrent insert for the same
    URL overwrites the body instead of creating a second blob.
    """
    ts = int(now if now is not None else time())
    with translate_errors(f"store content for {url}"):
        with conn:
            conn.execute(
                """
                INSERT INTO contents (url, content, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(url) DO UPDATE SET
                    content = excluded.content,
                    updated_at = MAX(contents.updated_at, excluded.updated_at)
                """,
                (url, content, ts, ts),
            )
            row = conn.execute(
                "SELECT id FROM contents WHERE url = ?", (url,)
            ).fetchone()
    return row["id"]


def get_content(conn: sqlite3.Connection, content_id: int) -> Optional[ContentBlob]:
    """Resolve a ``content_id`` reference.  Returns ``None`` if not found."""
    with translate_errors(f"read content {content_id}"):
        row = conn.execute(
            "SELECT * FROM contents WHERE id = ?", (content_id,)
        ).fetchone()
    return _row_to_blob(row) if row else None


def find_content_by_url(conn: sqlite3.Connection, url: str) -> Optional[ContentBlob]:
    with translate_errors(f"read content for {url}"):
        row = conn.execute(
            "SELECT * FROM contents WHERE url = ?", (url,)
        ).fetchone()
    return _row_to_blob(row) if row else None


def save_content(
    conn: sqlite3.Connection,
    blob: ContentBlob,
    now: Optional[int] = None,
) -> ContentBlob:
    """Overwrite the body of an existing blob in place (id is preserved)."""
    blob.updated_at = max(blob.updated_at, int(now if now is not None else time()))
    with translate_errors(f"update content for {blob.url}"):
        with conn:
            conn.execute(
                "UPDATE contents SET content = ?, updated_at = ? WHERE id = ?",
                (blob.content, blob.updated_at, blob.id),
            )
    return blob
