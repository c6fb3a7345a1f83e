"""Category candidate generator.

Ranks the categories of the items the user viewed by frequency and proposes
upcoming items from the top ones.
"""

import logging
from collections import Counter

from ...models import utcnow
from ..stores import BehaviorFilter, CatalogFilter, DataSources
from .base import CandidateGenerator, CandidateResult, to_candidate

logger = logging.getLogger(__name__)

SCORE = 0.85

# Number of most-viewed categories to draw from.
TOP_CATEGORIES = 3


def top_categories(categories: list[str], n: int = TOP_CATEGORIES) -> list[str]:
    """The *n* most frequent categories; equal counts keep first-seen order."""
    return [category for category, _ in Counter(categories).most_common(n)]


class CategoryCandidateGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "category"

    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        views = await sources.behavior.query(
            BehaviorFilter(user_ids=[user_id], action_types=["view"]),
            newest_first=False,
        )
        if not views:
            return self.empty()

        target_ids = list(dict.fromkeys(e.target_id for e in views))
        viewed = await sources.catalog.query(
            CatalogFilter(ids=target_ids), limit=len(target_ids)
        )
        category_of = {i.id: i.category for i in viewed if i.category}
        # one entry per view event, oldest first, so equal counts favour earlier interests
        categories = [category_of[e.target_id] for e in views if e.target_id in category_of]
        top = top_categories(categories)
        if not top:
            return self.empty()

        items = await sources.catalog.query(
            CatalogFilter(categories=top, start_from=utcnow()),
            limit=limit,
            exclude_seen_by=user_id,
        )
        candidates = [
            to_candidate(item, self.name, SCORE, f"Based on your interest in {item.category} events")
            for item in items
        ]
        return CandidateResult(generator_name=self.name, candidates=candidates[:limit])
