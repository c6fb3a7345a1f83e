"""Facet counts over a search result set.

Three dimensions are reported: ``category``, ``location`` (the item's city)
and ``date_bucket``.  Date buckets are fixed windows starting at the
beginning of the current (UTC) day; they nest, so an item happening today
also counts towards ``this_week`` and ``this_month``.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel, Field

from ...models import Item

DateBucket = Literal["today", "this_week", "this_month"]

DATE_BUCKETS: dict[str, timedelta] = {
    "today": timedelta(days=1),
    "this_week": timedelta(days=7),
    "this_month": timedelta(days=30),
}


class Facet(BaseModel):
    dimension: Literal["category", "location", "date_bucket"]
    value: str
    count: int
    selected: bool = False


class SearchFacets(BaseModel):
    category: list[Facet] = Field(default_factory=list)
    location: list[Facet] = Field(default_factory=list)
    date_bucket: list[Facet] = Field(default_factory=list)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def bucket_range(bucket: str, now: datetime) -> tuple[datetime, datetime]:
    start = start_of_day(now)
    return start, start + DATE_BUCKETS[bucket]


def date_buckets_of(item: Item, now: datetime) -> list[str]:
    if item.start_time is None:
        return []
    buckets = []
    for bucket in DATE_BUCKETS:
        lo, hi = bucket_range(bucket, now)
        if lo <= item.start_time < hi:
            buckets.append(bucket)
    return buckets


def _same(value: str | None, active: str | None) -> bool:
    return active is not None and value is not None and value.lower() == active.lower()


def value_facets(
    dimension: str,
    values: list[str | None],
    active: str | None,
) -> list[Facet]:
    """Grouped counts, most frequent first, ties by value."""
    counts = Counter(v for v in values if v)
    return [
        Facet(dimension=dimension, value=value, count=count, selected=_same(value, active))
        for value, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def bucket_facets(items: list[Item], now: datetime, active: str | None) -> list[Facet]:
    counts = Counter(b for item in items for b in date_buckets_of(item, now))
    return [
        Facet(
            dimension="date_bucket",
            value=bucket,
            count=counts.get(bucket, 0),
            selected=bucket == active,
        )
        for bucket in DATE_BUCKETS
    ]
