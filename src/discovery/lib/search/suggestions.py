"""Search-as-you-type suggestions.

Three sources feed the suggestion list, each with a fixed score:

* catalog titles starting with the prefix (0.9),
* popular logged queries starting with the prefix over the last days (0.8),
* catalog categories starting with the prefix (0.7).

Suggestions are de-duplicated by text (keeping the best score) and ordered
by score, then text.  A failing source is logged and skipped.
"""

import logging
from datetime import datetime, timedelta
from typing import Literal

from pydantic import BaseModel

from ...models import normalize_term, utcnow
from ..stores import CatalogFilter, DataSources

logger = logging.getLogger(__name__)

TITLE_SCORE = 0.9
QUERY_SCORE = 0.8
CATEGORY_SCORE = 0.7

# Titles repeat across recurring events; read extra rows so de-duplication
# still leaves enough distinct titles.
TITLE_OVERFETCH = 4


class Suggestion(BaseModel):
    text: str
    kind: Literal["title", "category", "query"]
    score: float


async def _catalog_suggestions(
    sources: DataSources, prefix: str, limit: int, now: datetime
) -> list[Suggestion]:
    items = await sources.catalog.query(
        CatalogFilter(start_from=now, title_prefix=prefix),
        limit=limit * TITLE_OVERFETCH,
        order_by="title",
    )
    titles = sorted({i.title for i in items})
    counts = await sources.catalog.category_counts(
        CatalogFilter(start_from=now, category_prefix=prefix), limit=limit
    )
    categories = sorted(category for category, _ in counts)
    return [
        *(Suggestion(text=t, kind="title", score=TITLE_SCORE) for t in titles[:limit]),
        *(Suggestion(text=c, kind="category", score=CATEGORY_SCORE) for c in categories[:limit]),
    ]


async def _query_suggestions(
    sources: DataSources, prefix: str, limit: int, since: datetime
) -> list[Suggestion]:
    terms = await sources.query_log.top_terms(since, limit=limit, prefix=prefix)
    return [Suggestion(text=term, kind="query", score=QUERY_SCORE) for term, _ in terms]


def merge_suggestions(suggestions: list[Suggestion], limit: int) -> list[Suggestion]:
    best: dict[str, Suggestion] = {}
    for s in suggestions:
        key = s.text.lower()
        if key not in best or s.score > best[key].score:
            best[key] = s
    ranked = sorted(best.values(), key=lambda s: (-s.score, s.text))
    return ranked[:limit]


async def suggest(
    sources: DataSources,
    prefix: str,
    limit: int = 5,
    days: int = 7,
    now: datetime | None = None,
) -> list[Suggestion]:
    needle = normalize_term(prefix)
    if not needle:
        return []
    now = now or utcnow()

    collected: list[Suggestion] = []
    try:
        collected.extend(await _catalog_suggestions(sources, needle, limit, now))
    except Exception:
        logger.exception("Catalog suggestions failed for prefix %r", needle)
    try:
        collected.extend(
            await _query_suggestions(sources, needle, limit, now - timedelta(days=days))
        )
    except Exception:
        logger.exception("Query-log suggestions failed for prefix %r", needle)

    return merge_suggestions(collected, limit)
