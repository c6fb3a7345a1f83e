"""Data source contracts and their Elasticsearch / in-process implementations."""

from .base import (
    BehaviorFilter,
    BehaviorStore,
    CatalogFilter,
    CatalogStore,
    DataSources,
    PreferenceStore,
    QueryLogStore,
    SocialGraphStore,
)
from .elasticsearch import elasticsearch_sources
from .memory import memory_sources

__all__ = [
    "BehaviorFilter",
    "BehaviorStore",
    "CatalogFilter",
    "CatalogStore",
    "DataSources",
    "PreferenceStore",
    "QueryLogStore",
    "SocialGraphStore",
    "elasticsearch_sources",
    "memory_sources",
]
