"""Content-based candidate generator.

Proposes upcoming items in the categories the user declared as favorites.
"""

import logging

from ...models import utcnow
from ..stores import CatalogFilter, DataSources
from .base import CandidateGenerator, CandidateResult, to_candidate

logger = logging.getLogger(__name__)

SCORE = 0.9


class ContentBasedCandidateGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "content_based"

    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        prefs = await sources.preferences.get(user_id)
        if prefs is None or not prefs.favorite_categories:
            return self.empty()

        items = await sources.catalog.query(
            CatalogFilter(categories=prefs.favorite_categories, start_from=utcnow()),
            limit=limit,
            exclude_seen_by=user_id,
        )
        candidates = [
            to_candidate(item, self.name, SCORE, f"Based on your interest in {item.category}")
            for item in items
        ]
        return CandidateResult(generator_name=self.name, candidates=candidates[:limit])
