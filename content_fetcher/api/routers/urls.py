"""URL storage endpoints.

Routes
------
POST /urls    Body: {"urls": ["https://...", ...]}    → store_urls
GET  /urls                                            → get_all_urls
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from content_fetcher.errors import PersistenceError
from content_fetcher.services.ingestion import get_all_urls, store_urls

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class StoreUrlsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    urls: list[str] = Field(..., min_length=1)


class UrlMetadata(BaseModel):
    # camelCase on the wire (errorMessage, contentType, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    status: str
    error_message: Optional[str] = None
    redirects: list[str] = Field(default_factory=list)
    content_type: Optional[str] = None
    content_length: Optional[int] = None
    final_url: Optional[str] = None
    content: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


class StoreUrlsResponse(BaseModel):
    success: list[UrlMetadata]
    failed: list[UrlMetadata]


class GetUrlsResponse(BaseModel):
    urls: list[UrlMetadata]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=StoreUrlsResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    status_code=200,
)
def store_urls_endpoint(body: StoreUrlsRequest, request: Request) -> dict[str, Any]:
    """Fetch and store every URL not seen before.

    Known URLs are answered from the store without a network call.  Individual
    failures land in ``failed``; the request only fails if the store is down.
    """
    conn = request.app.state.db
    try:
        result = store_urls(conn, body.urls)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return result.to_dict()


@router.get(
    "",
    response_model=GetUrlsResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
def get_urls_endpoint(request: Request) -> dict[str, Any]:
    """Return every stored URL with its content."""
    conn = request.app.state.db
    try:
        views = get_all_urls(conn)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"urls": [v.to_dict() for v in views]}
