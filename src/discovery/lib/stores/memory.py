"""In-process stores.

Used when no Elasticsearch cluster is configured (local runs) and by the test
suite.  They honour the same ordering and filtering rules as the
Elasticsearch stores.
"""

import uuid
from collections import Counter
from datetime import datetime, timezone

from ...models import BehaviorEvent, Item, QueryLogEntry, UserPreferences
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

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _matches_behavior(event: BehaviorEvent, flt: BehaviorFilter) -> bool:
    if flt.user_ids is not None and event.user_id not in flt.user_ids:
        return False
    if flt.exclude_user_ids and event.user_id in flt.exclude_user_ids:
        return False
    if flt.target_ids is not None and event.target_id not in flt.target_ids:
        return False
    if flt.action_types is not None and event.action_type not in flt.action_types:
        return False
    if flt.since is not None and event.timestamp < flt.since:
        return False
    return True


def _text_matches(item: Item, text: str) -> bool:
    needle = text.strip().lower()
    if not needle:
        return True
    fields = [item.title, item.description, item.category, *item.tags]
    return any(f and needle in f.lower() for f in fields)


def _matches_catalog(item: Item, flt: CatalogFilter) -> bool:
    if flt.ids is not None and item.id not in flt.ids:
        return False
    if flt.kinds is not None and item.kind not in flt.kinds:
        return False
    if flt.categories is not None and item.category not in flt.categories:
        return False
    if flt.cities is not None and item.city not in flt.cities:
        return False
    if flt.tags and not set(flt.tags) & set(item.tags):
        return False
    if flt.organizer_id is not None and (item.organizer is None or item.organizer.id != flt.organizer_id):
        return False
    if flt.verified_only and (item.organizer is None or not item.organizer.verified):
        return False
    if flt.start_from is not None and (item.start_time is None or item.start_time < flt.start_from):
        return False
    if flt.start_to is not None and (item.start_time is None or item.start_time > flt.start_to):
        return False
    if flt.created_from is not None and (item.created_at is None or item.created_at < flt.created_from):
        return False
    if flt.price_min is not None and (item.price is None or item.price < flt.price_min):
        return False
    if flt.price_max is not None and (item.price is None or item.price > flt.price_max):
        return False
    if flt.text and not _text_matches(item, flt.text):
        return False
    if flt.title_prefix and not item.title.lower().startswith(flt.title_prefix.lower()):
        return False
    if flt.category_prefix and not (
        item.category and item.category.lower().startswith(flt.category_prefix.lower())
    ):
        return False
    return True


def _engagement_key(item: Item) -> tuple:
    eng = item.engagement
    return (
        eng.engagement_score if eng.engagement_score is not None else -1.0,
        eng.likes or 0,
        eng.views or 0,
    )


class MemoryBehaviorStore(BehaviorStore):
    def __init__(self, events: list[BehaviorEvent] | None = None):
        self._events: list[BehaviorEvent] = []
        for event in events or []:
            self.add(event)

    def add(self, event: BehaviorEvent) -> str:
        event_id = event.id or uuid.uuid4().hex
        self._events.append(event.model_copy(update={"id": event_id}))
        return event_id

    async def append(self, event: BehaviorEvent) -> str:
        return self.add(event)

    async def query(
        self,
        flt: BehaviorFilter,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[BehaviorEvent]:
        matched = [e for e in self._events if _matches_behavior(e, flt)]
        # sorted() is stable, so events sharing a timestamp keep append order
        matched = sorted(matched, key=lambda e: e.timestamp, reverse=newest_first)
        return matched[:limit] if limit is not None else matched


class MemoryCatalogStore(CatalogStore):
    def __init__(self, behavior: BehaviorStore, items: list[Item] | None = None):
        self._behavior = behavior
        self._items: dict[str, Item] = {}
        for item in items or []:
            self.add(item)

    def add(self, item: Item) -> None:
        self._items[item.id] = item

    async def query(
        self,
        flt: CatalogFilter,
        limit: int = 20,
        offset: int = 0,
        order_by: CatalogOrder = "start_time",
        exclude_seen_by: str | None = None,
    ) -> list[Item]:
        seen: set[str] = set()
        if exclude_seen_by is not None:
            seen = await self._behavior.seen_target_ids(exclude_seen_by)

        matched = [
            item for item in self._items.values()
            if item.id not in seen and _matches_catalog(item, flt)
        ]

        if order_by == "-engagement":
            matched.sort(key=lambda i: i.id)
            matched.sort(key=_engagement_key, reverse=True)
        elif order_by == "title":
            matched.sort(key=lambda i: (i.title.lower(), i.id))
        elif order_by == "-created_at":
            matched.sort(key=lambda i: (i.created_at or _EPOCH, i.id), reverse=True)
        else:
            matched.sort(
                key=lambda i: (i.start_time or _EPOCH, i.id),
                reverse=order_by == "-start_time",
            )
        return matched[offset:offset + limit]

    async def category_counts(self, flt: CatalogFilter, limit: int = 10) -> list[tuple[str, int]]:
        counts = Counter(
            item.category for item in self._items.values()
            if item.category and _matches_catalog(item, flt)
        )
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[:limit]


class MemorySocialGraphStore(SocialGraphStore):
    def __init__(self):
        # user_id -> [(connected_user_id, status)]
        self._edges: dict[str, list[tuple[str, str]]] = {}

    def connect(self, user_id: str, connected_user_id: str, status: str = "accepted") -> None:
        self._edges.setdefault(user_id, []).append((connected_user_id, status))

    async def query(self, user_id: str, status: str = "accepted") -> list[str]:
        return [other for other, s in self._edges.get(user_id, []) if s == status]


class MemoryPreferenceStore(PreferenceStore):
    def __init__(self, preferences: list[UserPreferences] | None = None):
        self._prefs = {p.user_id: p for p in preferences or []}

    def set(self, prefs: UserPreferences) -> None:
        self._prefs[prefs.user_id] = prefs

    async def get(self, user_id: str) -> UserPreferences | None:
        return self._prefs.get(user_id)


class MemoryQueryLogStore(QueryLogStore):
    def __init__(self):
        self._entries: list[QueryLogEntry] = []

    def add(self, entry: QueryLogEntry) -> None:
        self._entries.append(entry)

    async def append(self, entry: QueryLogEntry) -> None:
        self.add(entry)

    async def top_terms(
        self,
        since: datetime,
        limit: int = 10,
        prefix: str | None = None,
    ) -> list[tuple[str, int]]:
        counts = Counter(
            e.term for e in self._entries
            if e.timestamp >= since and (prefix is None or e.term.startswith(prefix))
        )
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        return ranked[:limit]


def memory_sources() -> DataSources:
    """Build an empty, fully in-process set of data sources."""
    behavior = MemoryBehaviorStore()
    return DataSources(
        behavior=behavior,
        catalog=MemoryCatalogStore(behavior),
        social=MemorySocialGraphStore(),
        preferences=MemoryPreferenceStore(),
        query_log=MemoryQueryLogStore(),
    )
