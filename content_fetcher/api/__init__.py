"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from content_fetcher.api import app

    uvicorn content_fetcher.api:app --reload
"""

from content_fetcher.api.app import app

__all__ = ["app"]
