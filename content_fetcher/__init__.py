"""URL content fetcher: fetch, store and keep URL content fresh."""

__version__ = "0.1.0"
