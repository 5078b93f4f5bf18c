"""Fetcher package — redirect-following, size-limited HTTP retrieval."""

from content_fetcher.fetcher.fetcher import Fetcher
from content_fetcher.fetcher.models import FetchFailure, FetchOutcome, FetchSuccess

__all__ = ["Fetcher", "FetchOutcome", "FetchSuccess", "FetchFailure"]
