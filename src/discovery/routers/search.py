"""Search router – public catalog search.

GET /search
    Ranked, faceted results with suggestions and trending terms.

GET /search/suggestions
    Completions for a prefix.

GET /search/trending
    Most searched terms over a look-back window.

None of these require authentication; ``X-User-Id`` is only used to
attribute logged search terms.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..lib.search import (
    SearchEngine,
    SearchFacets,
    SearchQuery,
    SearchResult,
    Suggestion,
    TrendingTerm,
)
from ..lib.search.engine import SortBy
from ..lib.search.facets import DateBucket
from ..lib.search.geo import parse_location
from ..security import CallerId

router = APIRouter(tags=["search"])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class SearchEnvelope(BaseModel):
    success: bool = True
    query: str
    results: list[SearchResult] = Field(default_factory=list)
    facets: SearchFacets = Field(default_factory=SearchFacets)
    suggestions: list[Suggestion] = Field(default_factory=list)
    trending: list[TrendingTerm] = Field(default_factory=list)
    pagination: Pagination


class SuggestionResponse(BaseModel):
    success: bool = True
    suggestions: list[Suggestion]


class TrendingResponse(BaseModel):
    success: bool = True
    trending: list[TrendingTerm]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _split_csv(values: list[str] | None) -> list[str] | None:
    """Accept both repeated parameters and comma-separated values."""
    if not values:
        return None
    parts = [p.strip() for v in values for p in v.split(",")]
    return [p for p in parts if p] or None


def _engine(request: Request) -> SearchEngine:
    state = request.app.state
    return SearchEngine(state.sources, cache=state.cache, settings=state.settings)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/search", response_model=SearchEnvelope)
async def search_get(
    request: Request,
    caller_id: CallerId,
    q: str = Query("", description="Free-text query; empty browses the catalog"),
    types: list[str] | None = Query(None, description="Item kinds, repeated or comma-separated"),
    category: str | None = Query(None),
    city: str | None = Query(None),
    location: str | None = Query(None, description="Query point as 'lat,lon'"),
    radius_km: float = Query(50.0, gt=0),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    date_bucket: DateBucket | None = Query(None),
    price_min: float | None = Query(None, ge=0),
    price_max: float | None = Query(None, ge=0),
    tags: list[str] | None = Query(None, description="Tags, repeated or comma-separated"),
    organizer_filter: str | None = Query(None, description="Organizer id"),
    verified_only: bool = Query(False),
    include_past: bool = Query(False),
    sort_by: SortBy = Query("relevance"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> SearchEnvelope:
    try:
        query = SearchQuery(
            text=q,
            types=_split_csv(types),
            category=category,
            city=city,
            location=parse_location(location),
            radius_km=radius_km,
            date_from=date_from,
            date_to=date_to,
            date_bucket=date_bucket,
            price_min=price_min,
            price_max=price_max,
            tags=_split_csv(tags),
            organizer=organizer_filter,
            verified_only=verified_only,
            include_past=include_past,
            sort_by=sort_by,
            limit=limit,
            offset=offset,
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid search query: {exc.errors()[0]['msg']}") from exc

    response = await _engine(request).search(query, user_id=caller_id)
    return SearchEnvelope(
        query=q,
        results=response.results,
        facets=response.facets,
        suggestions=response.suggestions,
        trending=response.trending,
        pagination=Pagination(
            limit=limit,
            offset=offset,
            total=response.total,
            has_more=offset + len(response.results) < response.total,
        ),
    )


@router.get("/search/suggestions", response_model=SuggestionResponse)
async def search_suggestions(
    request: Request,
    q: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=20),
) -> SuggestionResponse:
    return SuggestionResponse(suggestions=await _engine(request).suggestions(q, limit=limit))


@router.get("/search/trending", response_model=TrendingResponse)
async def search_trending(
    request: Request,
    hours: int | None = Query(None, ge=1, le=24 * 30),
    limit: int = Query(10, ge=1, le=50),
) -> TrendingResponse:
    return TrendingResponse(trending=await _engine(request).trending(hours=hours, limit=limit))
