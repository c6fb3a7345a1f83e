"""Social candidate generator.

Proposes items the user's accepted connections purchased or attended, most
recent first.  Social proof carries the highest fixed score of all strategies.
"""

import logging

from ...models import utcnow
from ..stores import BehaviorFilter, CatalogFilter, DataSources
from .base import CandidateGenerator, CandidateResult, to_candidate

logger = logging.getLogger(__name__)

SCORE = 0.9

# Bound on connection events read per request.
CONNECTION_EVENTS_LIMIT = 500


class SocialCandidateGenerator(CandidateGenerator):
    @property
    def name(self) -> str:
        return "social"

    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        connections = await sources.social.query(user_id, status="accepted")
        if not connections:
            return self.empty()

        events = await sources.behavior.query(
            BehaviorFilter(user_ids=connections, action_types=["purchase", "attend"]),
            limit=CONNECTION_EVENTS_LIMIT,
            newest_first=True,
        )
        target_ids = list(dict.fromkeys(e.target_id for e in events))
        if not target_ids:
            return self.empty()

        items = await sources.catalog.query(
            CatalogFilter(ids=target_ids, start_from=utcnow()),
            limit=len(target_ids),
            exclude_seen_by=user_id,
        )
        # keep the recency order of the connections' activity
        rank = {target_id: i for i, target_id in enumerate(target_ids)}
        items.sort(key=lambda item: rank[item.id])

        candidates = [
            to_candidate(item, self.name, SCORE, "Your connections are attending this event")
            for item in items[:limit]
        ]
        return CandidateResult(generator_name=self.name, candidates=candidates)
