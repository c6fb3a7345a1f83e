"""Trending search terms.

Counts logged search terms over a look-back window.  When nothing was
searched in the window, the categories of catalog items created in the same
window stand in for them.
"""

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel

from ...models import utcnow
from ..stores import CatalogFilter, DataSources

logger = logging.getLogger(__name__)


class TrendingTerm(BaseModel):
    term: str
    count: int
    window: str


async def trending_terms(
    sources: DataSources,
    hours: int = 24,
    limit: int = 10,
    now: datetime | None = None,
) -> list[TrendingTerm]:
    now = now or utcnow()
    since = now - timedelta(hours=hours)
    window = f"{hours}h"

    terms = await sources.query_log.top_terms(since, limit=limit)
    if terms:
        return [TrendingTerm(term=t, count=c, window=window) for t, c in terms]

    logger.debug("No searches in the last %s, falling back to categories", window)
    ranked = await sources.catalog.category_counts(CatalogFilter(created_from=since), limit=limit)
    return [TrendingTerm(term=t, count=c, window=window) for t, c in ranked]
