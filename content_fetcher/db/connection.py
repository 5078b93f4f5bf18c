"""SQLite connection factory.

Usage::

    from content_fetcher.db.connection import get_connection

    with get_connection() as conn:
        cursor = conn.execute("SELECT 1")
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from content_fetcher.config import settings
from content_fetcher.errors import PersistenceError


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Steps performed on every new connection:
    1. Enable ``PRAGMA foreign_keys = ON``.
    2. Switch to WAL journal mode so the refetch thread and API requests
       can read while the other writes.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.

    Raises:
        PersistenceError: If the database file cannot be opened.
    """
    path = db_path or settings.db_path

    # Create parent directory if needed (no-op for `:memory:`)
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    with translate_errors("open database"):
        conn = sqlite3.connect(str(path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")

    return conn


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Re-raise any :class:`sqlite3.Error` as :class:`PersistenceError`."""
    try:
        yield
    except sqlite3.Error as exc:
        raise PersistenceError(f"Could not {action}: {exc}") from exc
