"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Optional


class UrlStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ContentBlob:
    id: int
    url: str
    content: str
    created_at: int
    updated_at: int


@dataclass
class UrlRecord:
    """Fetch state of one URL.

    ``content_id`` points at the :class:`ContentBlob` of the last successful
    fetch.  An ``error`` record keeps that reference so stale content survives
    a failed refresh.  Change status only through :meth:`mark_success` and
    :meth:`mark_error`.
    """

    id: Optional[int]
    url: str
    status: UrlStatus
    error_message: Optional[str] = None
    redirects: list[str] = field(default_factory=list)
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    final_url: Optional[str] = None
    content_id: Optional[int] = None
    created_at: int = 0
    updated_at: int = 0

    def __post_init__(self) -> None:
        self.status = UrlStatus(self.status)
        if self.status is UrlStatus.SUCCESS and self.content_id is None:
            raise ValueError(f"Successful record {self.url!r} needs a content_id")
        if self.status is UrlStatus.ERROR and not self.error_message:
            raise ValueError(f"Failed record {self.url!r} needs an error_message")

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def mark_success(
        self,
        content_id: int,
        *,
        redirects: Optional[list[str]] = None,
        content_type: Optional[str] = None,
        content_length: Optional[int] = None,
        final_url: Optional[str] = None,
    ) -> None:
        """Switch to ``success`` and replace the fetch metadata.

        ``error_message`` is cleared.
        """
        self.status = UrlStatus.SUCCESS
        self.content_id = content_id
        self.redirects = list(redirects or [])
        self.content_type = content_type
        self.content_length = content_length
        self.final_url = final_url
        self.error_message = None

    def mark_error(self, error_message: str) -> None:
        """Switch to ``error``; content fields are left as they are."""
        self.status = UrlStatus.ERROR
        self.error_message = error_message or "Unknown error"

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    def redirects_json(self) -> str:
        """Serialise redirects to a JSON string for storage."""
        return json.dumps(self.redirects)


@dataclass
class UrlView:
    """What callers of the ingestion service get back for one URL."""

    url: str
    status: UrlStatus
    error_message: Optional[str] = None
    redirects: list[str] = field(default_factory=list)
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    final_url: Optional[str] = None
    content: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @classmethod
    def from_record(
        cls,
        record: UrlRecord,
        content: Optional[str] = None,
        *,
        include_retained: bool = False,
    ) -> UrlView:
        """Build a view of *record*.

        Content fields are only copied for ``success`` records unless
        *include_retained* is set, in which case an ``error`` record also
        shows what it kept from its last successful fetch.
        """
        view = cls(
            url=record.url,
            status=record.status,
            error_message=record.error_message,
            redirects=list(record.redirects),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        if record.status is UrlStatus.SUCCESS or include_retained:
            view.content_type = record.content_type
            view.content_length = record.content_length
            view.final_url = record.final_url
            view.content = content
        return view

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready dict, dropping fields that are ``None``."""
        data: dict[str, Any] = {
            "url": self.url,
            "status": self.status.value,
            "error_message": self.error_message,
            "redirects": self.redirects,
            "content_type": self.content_type,
            "content_length": self.content_length,
            "final_url": self.final_url,
            "content": self.content,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class StoreResult:
    success: list[UrlView] = field(default_factory=list)
    failed: list[UrlView] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": [v.to_dict() for v in self.success],
            "failed": [v.to_dict() for v in self.failed],
        }
