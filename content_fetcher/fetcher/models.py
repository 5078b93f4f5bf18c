"""Data models for the fetch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass
class FetchSuccess:
    """Body and metadata of the final (non-redirect) response."""

    content: str
    content_type: Optional[str]
    content_length: int
    final_url: Optional[str] = None
    redirects: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


@dataclass
class FetchFailure:
    """Why a fetch failed, plus the redirects followed before it did."""

    error_message: str
    redirects: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = Union[FetchSuccess, FetchFailure]
