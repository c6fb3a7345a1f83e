"""Search pipeline.

1. Validate the query.
2. Read every catalog item matching the text and the structured filters
   that never affect facet counts (types, tags, organizer, dates, price),
   batch by batch.
3. Compute a relevance tier per item; apply the distance radius.
4. Count facets.  Each dimension is counted with every other facet filter
   applied but not its own, so sibling values stay visible.
5. Apply the facet filters, sort, paginate.
6. Add suggestions and trending terms; either failing yields an empty list.
7. Log the search term (best-effort).

Result pages, suggestions and trending terms are cached for a short TTL.
"""

import logging
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ...config import Settings
from ...errors import ValidationError
from ...metrics import MetricsCollector, timed
from ...models import GeoPoint, Item, QueryLogEntry, UtcDatetime, normalize_term, utcnow
from ..cache import CacheManager, make_key
from ..candidates.popularity import popularity_scores
from ..stores import CatalogFilter, DataSources
from .facets import (
    DateBucket,
    SearchFacets,
    bucket_facets,
    bucket_range,
    date_buckets_of,
    value_facets,
)
from .geo import haversine_km
from .relevance import TIER_SCORES, highlights, match_tier
from .suggestions import Suggestion, suggest
from .trending import TrendingTerm, trending_terms

logger = logging.getLogger(__name__)

SortBy = Literal["relevance", "date", "popularity", "distance"]


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class SearchQuery(BaseModel):
    text: str = ""
    types: list[str] | None = Field(None, description="Item kinds to include, e.g. ['event']")
    category: str | None = None
    city: str | None = None
    location: GeoPoint | None = None
    radius_km: float = Field(50.0, gt=0)
    date_from: UtcDatetime | None = None
    date_to: UtcDatetime | None = None
    date_bucket: DateBucket | None = None
    price_min: float | None = Field(None, ge=0)
    price_max: float | None = Field(None, ge=0)
    tags: list[str] | None = None
    organizer: str | None = None
    verified_only: bool = False
    include_past: bool = False
    sort_by: SortBy = "relevance"
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


class FacetMembership(BaseModel):
    category: str | None = None
    location: str | None = None
    date_buckets: list[str] = Field(default_factory=list)


class SearchResult(BaseModel):
    target_id: str
    relevance_score: float
    highlights: list[str] = Field(default_factory=list)
    facets: FacetMembership = Field(default_factory=FacetMembership)
    distance_km: float | None = None
    item: Item


class SearchPage(BaseModel):
    results: list[SearchResult] = Field(default_factory=list)
    total: int = 0
    facets: SearchFacets = Field(default_factory=SearchFacets)


class SearchResponse(BaseModel):
    query: SearchQuery
    results: list[SearchResult] = Field(default_factory=list)
    total: int = 0
    facets: SearchFacets = Field(default_factory=SearchFacets)
    suggestions: list[Suggestion] = Field(default_factory=list)
    trending: list[TrendingTerm] = Field(default_factory=list)


class _Hit:
    __slots__ = ("item", "tier", "distance_km")

    def __init__(self, item: Item, tier: int, distance_km: float | None):
        self.item = item
        self.tier = tier
        self.distance_km = distance_km


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def validate_query(query: SearchQuery) -> None:
    if query.date_from and query.date_to and query.date_from > query.date_to:
        raise ValidationError("date_from must not be after date_to")
    if query.price_min is not None and query.price_max is not None and query.price_min > query.price_max:
        raise ValidationError("price_min must not exceed price_max")
    if query.sort_by == "distance" and query.location is None:
        raise ValidationError("sort_by=distance requires a location")


def catalog_filter_for(query: SearchQuery, now: datetime) -> CatalogFilter:
    start_from = query.date_from
    if not query.include_past:
        start_from = max(start_from, now) if start_from else now
    return CatalogFilter(
        kinds=query.types or None,
        tags=query.tags or None,
        organizer_id=query.organizer,
        verified_only=query.verified_only,
        start_from=start_from,
        start_to=query.date_to,
        price_min=query.price_min,
        price_max=query.price_max,
        text=query.text.strip() or None,
    )


def _eq(value: str | None, wanted: str | None) -> bool:
    return wanted is None or (value is not None and value.lower() == wanted.lower())


def sort_hits(hits: list[_Hit], sort_by: str, settings: Settings) -> list[_Hit]:
    def start_key(h: _Hit) -> float:
        st = h.item.start_time
        return st.timestamp() if st else float("inf")

    if sort_by == "date":
        return sorted(hits, key=lambda h: (start_key(h), h.item.id))
    if sort_by == "distance":
        return sorted(hits, key=lambda h: (
            h.distance_km if h.distance_km is not None else float("inf"),
            h.item.id,
        ))
    if sort_by == "popularity":
        scores = popularity_scores([h.item for h in hits], settings.popularity)
        return sorted(hits, key=lambda h: (-scores[h.item.id], h.item.id))
    return sorted(hits, key=lambda h: (h.tier, start_key(h), h.item.id))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SearchEngine:
    def __init__(
        self,
        sources: DataSources,
        cache: CacheManager | None = None,
        settings: Settings | None = None,
        metrics: MetricsCollector | None = None,
        clock=utcnow,
    ):
        self.sources = sources
        self.cache = cache
        self.settings = settings or Settings()
        self.metrics = metrics or (cache.metrics if cache else MetricsCollector())
        self.clock = clock

    async def _cached(self, key: str, compute, model=None):
        if self.cache is None:
            return await compute()
        return await self.cache.get_or_compute(
            key, self.settings.search_cache_ttl_seconds, compute, model=model
        )

    async def search(self, query: SearchQuery, user_id: str | None = None) -> SearchResponse:
        validate_query(query)

        with timed(self.metrics, "search:query"):
            page = await self._cached(
                make_key("search:", query.model_dump(mode="json")),
                lambda: self.compute_page(query),
                model=SearchPage,
            )

        suggestions: list[Suggestion] = []
        if normalize_term(query.text):
            suggestions = await self.suggestions(query.text)

        response = SearchResponse(
            query=query,
            results=page.results,
            total=page.total,
            facets=page.facets,
            suggestions=suggestions,
            trending=await self.trending(),
        )
        # after suggestions and trending, which must not see this search
        await self.log_query(query.text, user_id)
        return response

    async def _matching_items(self, flt: CatalogFilter) -> list[Item]:
        batch_size = self.settings.search_batch_size
        max_results = self.settings.search_max_results
        items: list[Item] = []
        while len(items) < max_results:
            limit = min(batch_size, max_results - len(items))
            batch = await self.sources.catalog.query(flt, limit=limit, offset=len(items))
            items.extend(batch)
            if len(batch) < limit:
                return items
        logger.warning("Search reached the %d item limit; further matches are ignored", max_results)
        return items

    async def compute_page(self, query: SearchQuery) -> SearchPage:
        now = self.clock()
        items = await self._matching_items(catalog_filter_for(query, now))

        hits: list[_Hit] = []
        for item in items:
            tier = match_tier(item, query.text)
            if tier is None:
                continue
            distance = None
            if query.location is not None:
                if item.location is None:
                    continue
                distance = haversine_km(query.location, item.location)
                if distance > query.radius_km:
                    continue
            hits.append(_Hit(item, tier, distance))

        bucket_lo = bucket_hi = None
        if query.date_bucket:
            bucket_lo, bucket_hi = bucket_range(query.date_bucket, now)

        def cat_ok(h: _Hit) -> bool:
            return _eq(h.item.category, query.category)

        def city_ok(h: _Hit) -> bool:
            return _eq(h.item.city, query.city)

        def bucket_ok(h: _Hit) -> bool:
            if bucket_lo is None:
                return True
            st = h.item.start_time
            return st is not None and bucket_lo <= st < bucket_hi

        facets = SearchFacets(
            category=value_facets(
                "category",
                [h.item.category for h in hits if city_ok(h) and bucket_ok(h)],
                query.category,
            ),
            location=value_facets(
                "location",
                [h.item.city for h in hits if cat_ok(h) and bucket_ok(h)],
                query.city,
            ),
            date_bucket=bucket_facets(
                [h.item for h in hits if cat_ok(h) and city_ok(h)],
                now,
                query.date_bucket,
            ),
        )

        matched = [h for h in hits if cat_ok(h) and city_ok(h) and bucket_ok(h)]
        ordered = sort_hits(matched, query.sort_by, self.settings)
        window = ordered[query.offset:query.offset + query.limit]

        results = [
            SearchResult(
                target_id=h.item.id,
                relevance_score=TIER_SCORES[h.tier],
                highlights=highlights(h.item, query.text),
                facets=FacetMembership(
                    category=h.item.category,
                    location=h.item.city,
                    date_buckets=date_buckets_of(h.item, now),
                ),
                distance_km=round(h.distance_km, 3) if h.distance_km is not None else None,
                item=h.item,
            )
            for h in window
        ]
        return SearchPage(results=results, total=len(matched), facets=facets)

    async def suggestions(self, prefix: str, limit: int = 5) -> list[Suggestion]:
        async def compute():
            return await suggest(
                self.sources,
                prefix,
                limit=limit,
                days=self.settings.suggestion_days,
                now=self.clock(),
            )

        try:
            payload = await self._cached(
                make_key("suggest:", {"prefix": normalize_term(prefix), "limit": limit}),
                compute,
            )
        except Exception:
            logger.exception("Suggestions failed for %r", prefix)
            self.metrics.incr("search:suggestions.failed")
            return []
        return [Suggestion.model_validate(s) for s in payload]

    async def trending(self, hours: int | None = None, limit: int = 10) -> list[TrendingTerm]:
        hours = hours or self.settings.trending_hours

        async def compute():
            return await trending_terms(self.sources, hours=hours, limit=limit, now=self.clock())

        try:
            payload = await self._cached(
                make_key("trending:", {"hours": hours, "limit": limit}),
                compute,
            )
        except Exception:
            logger.exception("Trending terms failed")
            self.metrics.incr("search:trending.failed")
            return []
        return [TrendingTerm.model_validate(t) for t in payload]

    async def log_query(self, text: str, user_id: str | None = None) -> None:
        term = normalize_term(text)
        if len(term) < 2:
            return
        try:
            await self.sources.query_log.append(
                QueryLogEntry(term=term, user_id=user_id, timestamp=self.clock())
            )
        except Exception:
            logger.exception("Failed to log search term %r", term)
            self.metrics.incr("search:log.failed")
