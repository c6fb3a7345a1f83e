"""Tests for the Elasticsearch-backed stores against a fake client."""

from datetime import datetime, timezone

import pytest

from ...errors import UpstreamQueryError
from ...models import BehaviorEvent, QueryLogEntry
from .base import BehaviorFilter, CatalogFilter
from .elasticsearch import (
    CATALOG_SORTS,
    MAX_RESULT_WINDOW,
    behavior_filter_clauses,
    catalog_filter_clauses,
    elasticsearch_sources,
    text_clause,
)


class FakeEs:
    """Configurable fake Elasticsearch client for unit tests."""

    def __init__(self, responses: dict | None = None):
        self._responses = responses or {}
        self._default = {"hits": {"hits": []}}
        self.calls: list[dict] = []
        self.indexed: list[dict] = []

    async def search(self, *, index=None, query=None, size=None, **kwargs):
        self.calls.append({"index": index, "query": query, "size": size, **kwargs})
        return self._responses.get(index, self._default)

    async def index(self, *, index=None, id=None, document=None):
        self.indexed.append({"index": index, "id": id, "document": document})
        return {"result": "created"}


def hits(*docs: tuple[str, dict]) -> dict:
    return {"hits": {"hits": [{"_id": _id, "_source": src} for _id, src in docs]}}


T0 = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Query builders
# ---------------------------------------------------------------------------

class TestFilterClauses:
    def test_behavior_clauses(self):
        filters, must_not = behavior_filter_clauses(BehaviorFilter(
            user_ids=["U1"],
            exclude_user_ids=["U2"],
            action_types=["purchase"],
            since=T0,
        ))
        assert {"terms": {"user_id": ["U1"]}} in filters
        assert {"terms": {"action_type": ["purchase"]}} in filters
        assert {"range": {"timestamp": {"gte": T0.isoformat()}}} in filters
        assert must_not == [{"terms": {"user_id": ["U2"]}}]

    def test_empty_filter_has_no_clauses(self):
        assert catalog_filter_clauses(CatalogFilter()) == []

    def test_catalog_ranges_merge(self):
        filters = catalog_filter_clauses(CatalogFilter(price_min=5, price_max=20, start_from=T0))
        assert {"range": {"price": {"gte": 5, "lte": 20}}} in filters
        assert {"range": {"start_time": {"gte": T0.isoformat()}}} in filters

    def test_verified_only(self):
        assert catalog_filter_clauses(CatalogFilter(verified_only=True)) == [
            {"term": {"organizer.verified": True}}
        ]

    def test_text_matches_any_searchable_field(self):
        filters = catalog_filter_clauses(CatalogFilter(text=" Jazz* "))
        assert filters == [text_clause("Jazz*")]

        should = filters[0]["bool"]["should"]
        assert filters[0]["bool"]["minimum_should_match"] == 1
        assert should[0]["multi_match"]["query"] == "Jazz*"
        assert should[0]["multi_match"]["fields"] == ["title", "description"]
        assert {"wildcard": {"tags": {"value": "*jazz\\**", "case_insensitive": True}}} in should
        assert {"wildcard": {"category": {"value": "*jazz\\**", "case_insensitive": True}}} in should

    def test_blank_text_adds_nothing(self):
        assert catalog_filter_clauses(CatalogFilter(text="   ")) == []

    def test_prefixes(self):
        filters = catalog_filter_clauses(CatalogFilter(title_prefix="ja", category_prefix="mu"))
        assert filters == [
            {"prefix": {"title.keyword": {"value": "ja", "case_insensitive": True}}},
            {"prefix": {"category": {"value": "mu", "case_insensitive": True}}},
        ]


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class TestBehaviorStore:
    @pytest.mark.asyncio
    async def test_append_indexes_document(self):
        es = FakeEs()
        store = elasticsearch_sources(es).behavior

        behavior_id = await store.append(
            BehaviorEvent(user_id="U1", target_id="E1", action_type="like", timestamp=T0)
        )

        assert es.indexed[0]["index"] == "behavior"
        assert es.indexed[0]["id"] == behavior_id
        assert es.indexed[0]["document"]["action_type"] == "like"
        assert "id" not in es.indexed[0]["document"]

    @pytest.mark.asyncio
    async def test_query_parses_hits(self):
        es = FakeEs(responses={"behavior": hits(
            ("b1", {"user_id": "U1", "target_id": "E1", "action_type": "view",
                    "timestamp": "2026-05-01T12:00:00Z"}),
        )})
        store = elasticsearch_sources(es).behavior

        events = await store.query(BehaviorFilter(user_ids=["U1"]), limit=5)

        assert events[0].id == "b1"
        assert events[0].timestamp == T0
        assert es.calls[0]["size"] == 5
        assert es.calls[0]["sort"] == [{"timestamp": "desc"}]

    @pytest.mark.asyncio
    async def test_unbounded_query_uses_result_window(self):
        es = FakeEs()
        await elasticsearch_sources(es).behavior.query(BehaviorFilter())
        assert es.calls[0]["size"] == MAX_RESULT_WINDOW

    @pytest.mark.asyncio
    async def test_unexpected_response_raises(self):
        es = FakeEs(responses={"behavior": ["not", "a", "response"]})
        with pytest.raises(UpstreamQueryError):
            await elasticsearch_sources(es).behavior.query(BehaviorFilter())


class TestCatalogStore:
    @pytest.mark.asyncio
    async def test_exclude_seen_adds_must_not(self):
        es = FakeEs(responses={
            "behavior": hits(("b1", {"target_id": "E2"}), ("b2", {"target_id": "E1"})),
            "events": hits(("E3", {"title": "Jazz night", "category": "music"})),
        })
        catalog = elasticsearch_sources(es).catalog

        items = await catalog.query(CatalogFilter(categories=["music"]), exclude_seen_by="U1")

        assert [i.id for i in items] == ["E3"]
        catalog_call = es.calls[-1]
        assert catalog_call["index"] == "events"
        assert catalog_call["query"]["bool"]["must_not"] == [{"terms": {"id": ["E1", "E2"]}}]
        assert catalog_call["sort"] == CATALOG_SORTS["start_time"]

    @pytest.mark.asyncio
    async def test_skips_malformed_documents(self):
        es = FakeEs(responses={"events": hits(
            ("E1", {"title": "Fine"}),
            ("E2", {"description": "no title"}),
        )})
        items = await elasticsearch_sources(es).catalog.query(CatalogFilter())
        assert [i.id for i in items] == ["E1"]

    @pytest.mark.asyncio
    async def test_pagination_passed_through(self):
        es = FakeEs()
        await elasticsearch_sources(es).catalog.query(
            CatalogFilter(), limit=7, offset=14, order_by="-engagement"
        )
        assert es.calls[0]["size"] == 7
        assert es.calls[0]["from_"] == 14
        assert es.calls[0]["sort"] == CATALOG_SORTS["-engagement"]

    @pytest.mark.asyncio
    async def test_category_counts_uses_aggregation(self):
        es = FakeEs(responses={"events": {
            "hits": {"hits": []},
            "aggregations": {"categories": {"buckets": [
                {"key": "music", "doc_count": 12},
                {"key": "art", "doc_count": 3},
            ]}},
        }})

        counts = await elasticsearch_sources(es).catalog.category_counts(
            CatalogFilter(created_from=T0), limit=2
        )

        assert counts == [("music", 12), ("art", 3)]
        assert es.calls[0]["size"] == 0
        assert es.calls[0]["aggs"]["categories"]["terms"]["field"] == "category"
        assert es.calls[0]["aggs"]["categories"]["terms"]["size"] == 2
        assert es.calls[0]["query"] == {
            "bool": {"filter": [{"range": {"created_at": {"gte": T0.isoformat()}}}]}
        }


class TestOtherStores:
    @pytest.mark.asyncio
    async def test_social_connections(self):
        es = FakeEs(responses={"connections": hits(
            ("c1", {"connected_user_id": "U2"}),
            ("c2", {"connected_user_id": "U3"}),
        )})
        assert await elasticsearch_sources(es).social.query("U1") == ["U2", "U3"]
        assert {"term": {"status": "accepted"}} in es.calls[0]["query"]["bool"]["filter"]

    @pytest.mark.asyncio
    async def test_preferences(self):
        es = FakeEs(responses={"user_preferences": hits(
            ("p1", {"user_id": "U1", "favorite_categories": ["jazz"]}),
        )})
        prefs = await elasticsearch_sources(es).preferences.get("U1")
        assert prefs.favorite_categories == ["jazz"]

    @pytest.mark.asyncio
    async def test_missing_preferences(self):
        assert await elasticsearch_sources(FakeEs()).preferences.get("U1") is None

    @pytest.mark.asyncio
    async def test_query_log_top_terms_uses_aggregation(self):
        es = FakeEs(responses={"search_queries": {
            "hits": {"hits": []},
            "aggregations": {"terms": {"buckets": [
                {"key": "jazz", "doc_count": 4},
                {"key": "jam", "doc_count": 1},
            ]}},
        }})
        log = elasticsearch_sources(es).query_log

        terms = await log.top_terms(T0, limit=2, prefix="ja")

        assert terms == [("jazz", 4), ("jam", 1)]
        assert es.calls[0]["size"] == 0
        assert es.calls[0]["aggs"]["terms"]["terms"]["size"] == 2
        assert {"prefix": {"term": "ja"}} in es.calls[0]["query"]["bool"]["filter"]

    @pytest.mark.asyncio
    async def test_query_log_append(self):
        es = FakeEs()
        await elasticsearch_sources(es).query_log.append(QueryLogEntry(term="jazz", timestamp=T0))
        assert es.indexed[0]["index"] == "search_queries"
        assert es.indexed[0]["document"]["term"] == "jazz"
