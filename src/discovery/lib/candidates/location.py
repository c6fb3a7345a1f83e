"""Location candidate generator.

Infers the user's cities from the targets of their own recent purchases and
attendances, then proposes upcoming items in those cities.
"""

import logging

from ...models import utcnow
from ..stores import BehaviorFilter, CatalogFilter, DataSources
from .base import CandidateGenerator, CandidateResult, to_candidate

logger = logging.getLogger(__name__)

SCORE = 0.8

# Number of recent purchase/attend events used to infer cities.
RECENT_EVENTS_LIMIT = 10


class LocationCandidateGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "location"

    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        recent = await sources.behavior.query(
            BehaviorFilter(user_ids=[user_id], action_types=["purchase", "attend"]),
            limit=RECENT_EVENTS_LIMIT,
        )
        if not recent:
            return self.empty()

        target_ids = list(dict.fromkeys(e.target_id for e in recent))
        visited = await sources.catalog.query(
            CatalogFilter(ids=target_ids), limit=len(target_ids)
        )
        cities = list(dict.fromkeys(i.city for i in visited if i.city))
        if not cities:
            logger.info("No cities known for recent targets of user %s", user_id)
            return self.empty()

        items = await sources.catalog.query(
            CatalogFilter(cities=cities, start_from=utcnow()),
            limit=limit,
            exclude_seen_by=user_id,
        )
        candidates = [
            to_candidate(item, self.name, SCORE, f"Near your preferred location: {item.city}")
            for item in items
        ]
        return CandidateResult(generator_name=self.name, candidates=candidates[:limit])
