"""Catalog search: relevance ranking, facets, suggestions and trending terms."""

from .engine import SearchEngine, SearchQuery, SearchResponse, SearchResult
from .facets import Facet, SearchFacets
from .suggestions import Suggestion
from .trending import TrendingTerm

__all__ = [
    "Facet",
    "SearchEngine",
    "SearchFacets",
    "SearchQuery",
    "SearchResponse",
    "SearchResult",
    "Suggestion",
    "TrendingTerm",
]
