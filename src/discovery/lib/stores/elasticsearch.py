"""Elasticsearch-backed stores.

Index layout (one document per record):

* ``behavior``: ``user_id``, ``target_id``, ``action_type``, ``metadata``,
  ``session_id``, ``timestamp``; the document ``_id`` is the behavior id.
* ``events``: the catalog; documents mirror :class:`~discovery.models.Item`
  with ``location`` mapped as a ``geo_point``, ``title`` and ``description``
  as ``text`` (``title`` with a ``title.keyword`` sub-field), and ``category``
  and ``tags`` as ``keyword``.
* ``connections``: ``user_id``, ``connected_user_id``, ``status``.
* ``user_preferences``: ``user_id``, ``favorite_categories``.
* ``search_queries``: ``term`` (keyword), ``user_id``, ``timestamp``.
"""

import logging
import uuid
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from ...models import BehaviorEvent, Item, QueryLogEntry, UserPreferences
from ..elasticsearch import iter_sources, unwrap_es_response
from .base import (
    BehaviorFilter,
    BehaviorStore,
    CatalogFilter,
    CatalogOrder,
    CatalogStore,
    DataSources,
    PreferenceStore,
    QueryLogStore,
    SocialGraphStore,
)

logger = logging.getLogger(__name__)

BEHAVIOR_INDEX = "behavior"
CATALOG_INDEX = "events"
CONNECTIONS_INDEX = "connections"
PREFERENCES_INDEX = "user_preferences"
QUERY_LOG_INDEX = "search_queries"

# Upper bound for unbounded reads (the default ES max_result_window).
MAX_RESULT_WINDOW = 10_000


def _bool_query(filters: list[dict], must_not: list[dict] | None = None) -> dict:
    query: dict = {"bool": {"filter": filters}}
    if must_not:
        query["bool"]["must_not"] = must_not
    return query


def behavior_filter_clauses(flt: BehaviorFilter) -> tuple[list[dict], list[dict]]:
    filters: list[dict] = []
    must_not: list[dict] = []
    if flt.user_ids is not None:
        filters.append({"terms": {"user_id": flt.user_ids}})
    if flt.exclude_user_ids:
        must_not.append({"terms": {"user_id": flt.exclude_user_ids}})
    if flt.target_ids is not None:
        filters.append({"terms": {"target_id": flt.target_ids}})
    if flt.action_types is not None:
        filters.append({"terms": {"action_type": flt.action_types}})
    if flt.since is not None:
        filters.append({"range": {"timestamp": {"gte": flt.since.isoformat()}}})
    return filters, must_not


def _escape_wildcard(value: str) -> str:
    for ch in ("\\", "*", "?"):
        value = value.replace(ch, "\\" + ch)
    return value


def text_clause(text: str) -> dict:
    """Case-insensitive substring match over title, description, category and tags."""
    pattern = f"*{_escape_wildcard(text.strip().lower())}*"
    return {
        "bool": {
            "should": [
                {
                    "multi_match": {
                        "query": text.strip(),
                        "type": "phrase_prefix",
                        "fields": ["title", "description"],
                    }
                },
                *(
                    {"wildcard": {field: {"value": pattern, "case_insensitive": True}}}
                    for field in ("title.keyword", "category", "tags")
                ),
            ],
            "minimum_should_match": 1,
        }
    }


def catalog_filter_clauses(flt: CatalogFilter) -> list[dict]:
    filters: list[dict] = []
    if flt.ids is not None:
        filters.append({"terms": {"id": flt.ids}})
    if flt.kinds is not None:
        filters.append({"terms": {"kind": flt.kinds}})
    if flt.categories is not None:
        filters.append({"terms": {"category": flt.categories}})
    if flt.cities is not None:
        filters.append({"terms": {"city": flt.cities}})
    if flt.tags:
        filters.append({"terms": {"tags": flt.tags}})
    if flt.organizer_id is not None:
        filters.append({"term": {"organizer.id": flt.organizer_id}})
    if flt.verified_only:
        filters.append({"term": {"organizer.verified": True}})

    start_range = {}
    if flt.start_from is not None:
        start_range["gte"] = flt.start_from.isoformat()
    if flt.start_to is not None:
        start_range["lte"] = flt.start_to.isoformat()
    if start_range:
        filters.append({"range": {"start_time": start_range}})

    if flt.created_from is not None:
        filters.append({"range": {"created_at": {"gte": flt.created_from.isoformat()}}})

    price_range = {}
    if flt.price_min is not None:
        price_range["gte"] = flt.price_min
    if flt.price_max is not None:
        price_range["lte"] = flt.price_max
    if price_range:
        filters.append({"range": {"price": price_range}})

    if flt.text and flt.text.strip():
        filters.append(text_clause(flt.text))
    if flt.title_prefix:
        filters.append({"prefix": {"title.keyword": {"value": flt.title_prefix, "case_insensitive": True}}})
    if flt.category_prefix:
        filters.append({"prefix": {"category": {"value": flt.category_prefix, "case_insensitive": True}}})
    return filters


CATALOG_SORTS: dict[str, list[dict]] = {
    "start_time": [{"start_time": {"order": "asc", "missing": "_first"}}, {"id": "asc"}],
    "-start_time": [{"start_time": {"order": "desc", "missing": "_last"}}, {"id": "asc"}],
    "-created_at": [{"created_at": {"order": "desc", "missing": "_last"}}, {"id": "desc"}],
    "title": [{"title.keyword": "asc"}, {"id": "asc"}],
    "-engagement": [
        {"engagement.engagement_score": {"order": "desc", "missing": "_last"}},
        {"engagement.likes": {"order": "desc", "missing": "_last"}},
        {"engagement.views": {"order": "desc", "missing": "_last"}},
        {"id": "asc"},
    ],
}


class ElasticsearchBehaviorStore(BehaviorStore):
    def __init__(self, es, index: str = BEHAVIOR_INDEX):
        self.es = es
        self.index = index

    async def append(self, event: BehaviorEvent) -> str:
        event_id = event.id or uuid.uuid4().hex
        document = event.model_dump(mode="json", exclude={"id"})
        await self.es.index(index=self.index, id=event_id, document=document)
        return event_id

    async def query(
        self,
        flt: BehaviorFilter,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[BehaviorEvent]:
        filters, must_not = behavior_filter_clauses(flt)
        resp = await self.es.search(
            index=self.index,
            query=_bool_query(filters, must_not),
            size=limit if limit is not None else MAX_RESULT_WINDOW,
            sort=[{"timestamp": "desc" if newest_first else "asc"}],
        )
        data = unwrap_es_response(resp)
        return [BehaviorEvent(id=_id, **src) for _id, src in iter_sources(data)]

    async def seen_target_ids(self, user_id: str) -> set[str]:
        resp = await self.es.search(
            index=self.index,
            query=_bool_query([{"term": {"user_id": user_id}}]),
            size=MAX_RESULT_WINDOW,
            _source=["target_id"],
        )
        data = unwrap_es_response(resp)
        return {src["target_id"] for _, src in iter_sources(data) if src.get("target_id")}


class ElasticsearchCatalogStore(CatalogStore):
    def __init__(self, es, behavior: BehaviorStore, index: str = CATALOG_INDEX):
        self.es = es
        self.behavior = behavior
        self.index = index

    async def query(
        self,
        flt: CatalogFilter,
        limit: int = 20,
        offset: int = 0,
        order_by: CatalogOrder = "start_time",
        exclude_seen_by: str | None = None,
    ) -> list[Item]:
        must_not: list[dict] = []
        if exclude_seen_by is not None:
            seen = await self.behavior.seen_target_ids(exclude_seen_by)
            if seen:
                must_not.append({"terms": {"id": sorted(seen)}})

        resp = await self.es.search(
            index=self.index,
            query=_bool_query(catalog_filter_clauses(flt), must_not),
            size=limit,
            from_=offset,
            sort=CATALOG_SORTS[order_by],
        )
        data = unwrap_es_response(resp)

        items: list[Item] = []
        for _id, src in iter_sources(data):
            try:
                items.append(Item.model_validate({"id": _id, **src}))
            except PydanticValidationError:
                logger.warning("Skipping malformed catalog document %s", _id)
        return items

    async def category_counts(self, flt: CatalogFilter, limit: int = 10) -> list[tuple[str, int]]:
        resp = await self.es.search(
            index=self.index,
            query=_bool_query(catalog_filter_clauses(flt)),
            size=0,
            aggs={
                "categories": {
                    "terms": {
                        "field": "category",
                        "size": limit,
                        "order": [{"_count": "desc"}, {"_key": "asc"}],
                    }
                }
            },
        )
        data = unwrap_es_response(resp)
        buckets = data.get("aggregations", {}).get("categories", {}).get("buckets", [])
        return [(b["key"], int(b["doc_count"])) for b in buckets]


class ElasticsearchSocialGraphStore(SocialGraphStore):
    def __init__(self, es, index: str = CONNECTIONS_INDEX):
        self.es = es
        self.index = index

    async def query(self, user_id: str, status: str = "accepted") -> list[str]:
        resp = await self.es.search(
            index=self.index,
            query=_bool_query([
                {"term": {"user_id": user_id}},
                {"term": {"status": status}},
            ]),
            size=MAX_RESULT_WINDOW,
            _source=["connected_user_id"],
        )
        data = unwrap_es_response(resp)
        return [
            src["connected_user_id"]
            for _, src in iter_sources(data)
            if src.get("connected_user_id")
        ]


class ElasticsearchPreferenceStore(PreferenceStore):
    def __init__(self, es, index: str = PREFERENCES_INDEX):
        self.es = es
        self.index = index

    async def get(self, user_id: str) -> UserPreferences | None:
        resp = await self.es.search(
            index=self.index,
            query=_bool_query([{"term": {"user_id": user_id}}]),
            size=1,
        )
        data = unwrap_es_response(resp)
        for _, src in iter_sources(data):
            return UserPreferences(
                user_id=user_id,
                favorite_categories=src.get("favorite_categories") or [],
            )
        return None


class ElasticsearchQueryLogStore(QueryLogStore):
    def __init__(self, es, index: str = QUERY_LOG_INDEX):
        self.es = es
        self.index = index

    async def append(self, entry: QueryLogEntry) -> None:
        await self.es.index(index=self.index, document=entry.model_dump(mode="json"))

    async def top_terms(
        self,
        since: datetime,
        limit: int = 10,
        prefix: str | None = None,
    ) -> list[tuple[str, int]]:
        filters: list[dict] = [{"range": {"timestamp": {"gte": since.isoformat()}}}]
        if prefix:
            filters.append({"prefix": {"term": prefix}})

        resp = await self.es.search(
            index=self.index,
            query=_bool_query(filters),
            size=0,
            aggs={
                "terms": {
                    "terms": {
                        "field": "term",
                        "size": limit,
                        "order": [{"_count": "desc"}, {"_key": "asc"}],
                    }
                }
            },
        )
        data = unwrap_es_response(resp)
        buckets = data.get("aggregations", {}).get("terms", {}).get("buckets", [])
        return [(b["key"], int(b["doc_count"])) for b in buckets]


def elasticsearch_sources(es) -> DataSources:
    behavior = ElasticsearchBehaviorStore(es)
    return DataSources(
        behavior=behavior,
        catalog=ElasticsearchCatalogStore(es, behavior),
        social=ElasticsearchSocialGraphStore(es),
        preferences=ElasticsearchPreferenceStore(es),
        query_log=ElasticsearchQueryLogStore(es),
    )
