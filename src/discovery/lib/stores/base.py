"""Read/write contracts for the data sources behind recommendations and search.

Strategies and the search engine only ever talk to these interfaces, never to
a concrete backend.  Two implementations exist: Elasticsearch
(``elasticsearch.py``) and in-process (``memory.py``).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ...models import BehaviorEvent, Item, QueryLogEntry, UserPreferences, UtcDatetime


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class BehaviorFilter(BaseModel):
    """Selects behavior events.  Unset fields do not constrain the result."""

    user_ids: list[str] | None = None
    exclude_user_ids: list[str] | None = None
    target_ids: list[str] | None = None
    action_types: list[str] | None = None
    since: UtcDatetime | None = None


class CatalogFilter(BaseModel):
    """Structured catalog filters.  Unset fields do not constrain the result."""

    ids: list[str] | None = None
    kinds: list[str] | None = None
    categories: list[str] | None = None
    cities: list[str] | None = None
    tags: list[str] | None = Field(None, description="Item must carry at least one of these tags")
    organizer_id: str | None = None
    verified_only: bool = False
    start_from: UtcDatetime | None = None
    start_to: UtcDatetime | None = None
    created_from: UtcDatetime | None = None
    price_min: float | None = None
    price_max: float | None = None
    text: str | None = Field(
        None, description="Case-insensitive substring of the title, description, category or a tag"
    )
    title_prefix: str | None = Field(None, description="Case-insensitive title prefix")
    category_prefix: str | None = Field(None, description="Case-insensitive category prefix")


CatalogOrder = Literal["start_time", "-start_time", "-engagement", "-created_at", "title"]


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class BehaviorStore(ABC):
    @abstractmethod
    async def append(self, event: BehaviorEvent) -> str:
        """Persist *event* and return its generated id."""
        ...

    @abstractmethod
    async def query(
        self,
        flt: BehaviorFilter,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[BehaviorEvent]:
        ...

    async def seen_target_ids(self, user_id: str) -> set[str]:
        """Every target the user has any logged event against."""
        events = await self.query(BehaviorFilter(user_ids=[user_id]))
        return {e.target_id for e in events}


class CatalogStore(ABC):
    @abstractmethod
    async def query(
        self,
        flt: CatalogFilter,
        limit: int = 20,
        offset: int = 0,
        order_by: CatalogOrder = "start_time",
        exclude_seen_by: str | None = None,
    ) -> list[Item]:
        """Return catalog items matching *flt*.

        When *exclude_seen_by* is set, items the given user has any behavior
        event against are left out.
        """
        ...

    @abstractmethod
    async def category_counts(self, flt: CatalogFilter, limit: int = 10) -> list[tuple[str, int]]:
        """Item count per category over everything matching *flt*.

        Ordered by count descending, then category.
        """
        ...


class SocialGraphStore(ABC):
    @abstractmethod
    async def query(self, user_id: str, status: str = "accepted") -> list[str]:
        """Return the ids of the user's connections with the given status."""
        ...


class PreferenceStore(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> UserPreferences | None:
        ...


class QueryLogStore(ABC):
    @abstractmethod
    async def append(self, entry: QueryLogEntry) -> None:
        ...

    @abstractmethod
    async def top_terms(
        self,
        since: datetime,
        limit: int = 10,
        prefix: str | None = None,
    ) -> list[tuple[str, int]]:
        """Most frequent terms logged at or after *since*, count desc then term."""
        ...


class DataSources:
    """The set of stores a request reads from."""

    def __init__(
        self,
        behavior: BehaviorStore,
        catalog: CatalogStore,
        social: SocialGraphStore,
        preferences: PreferenceStore,
        query_log: QueryLogStore,
    ):
        self.behavior = behavior
        self.catalog = catalog
        self.social = social
        self.preferences = preferences
        self.query_log = query_log
