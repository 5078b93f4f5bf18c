"""Database layer package.

Public re-exports so callers can write::

    from content_fetcher.db import get_connection, init_db
    from content_fetcher.db import urls, contents
"""

from content_fetcher.db.connection import get_connection
from content_fetcher.db.migrations import init_db
from content_fetcher.db import contents, urls

__all__ = ["get_connection", "init_db", "contents", "urls"]
