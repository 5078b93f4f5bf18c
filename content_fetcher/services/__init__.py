"""Services package — ingestion of URL batches and refetch of stale URLs."""

from content_fetcher.services.ingestion import get_all_urls, store_urls
from content_fetcher.services.reconciler import (
    RefetchReport,
    RefetchScheduler,
    refetch_stale_urls,
)

__all__ = [
    "store_urls",
    "get_all_urls",
    "refetch_stale_urls",
    "RefetchReport",
    "RefetchScheduler",
]
