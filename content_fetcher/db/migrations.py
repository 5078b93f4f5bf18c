"""Schema initialisation.

``init_db(conn)`` is idempotent: every statement in ``schema.sql`` uses
``IF NOT EXISTS``.
"""

from __future__ import annotations

import sqlite3

from content_fetcher.config import settings
from content_fetcher.db.connection import translate_errors


def init_db(conn: sqlite3.Connection) -> None:
    """Create the ``urls`` and ``contents`` tables and their indexes.

    Raises:
        PersistenceError: If the schema cannot be created.
    """
    schema = settings.schema_path.read_text(encoding="utf-8")
    with translate_errors("initialise schema"):
        conn.executescript(schema)
