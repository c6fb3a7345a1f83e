"""Shared Elasticsearch utilities.

Helpers for building the application client and for working with responses
across the Elasticsearch-backed stores.
"""

import logging

from elastic_transport import ObjectApiResponse
from elasticsearch import AsyncElasticsearch

from ..config import Settings
from ..errors import UpstreamQueryError

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> AsyncElasticsearch:
    """Create the application-scoped ``AsyncElasticsearch`` client."""
    if not settings.es_url:
        raise ValueError("ES_URL is not configured")
    if settings.es_api_key:
        return AsyncElasticsearch(settings.es_url, api_key=settings.es_api_key)
    return AsyncElasticsearch(settings.es_url)


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict.

    Raises ``UpstreamQueryError`` if the response type is unexpected.
    """
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise UpstreamQueryError("Invalid Elasticsearch response")


def iter_sources(data: dict):
    """Yield ``(_id, _source)`` for every hit in a search response body."""
    for hit in data.get("hits", {}).get("hits", []):
        yield hit.get("_id"), hit.get("_source") or {}
