"""Collaborative candidate generator.

Finds peers who took a high-value action (purchase, attend, like) on the same
targets as the user, then proposes the other targets those peers valued:

1. Query the user's own high-value targets.
2. Find other users with high-value actions on those targets.
3. Collect the peers' high-value targets.
4. Fetch the upcoming ones from the catalog, excluding anything the user
   has already interacted with.
"""

import logging

from ...models import utcnow
from ..stores import BehaviorFilter, CatalogFilter, DataSources
from .base import CandidateGenerator, CandidateResult, to_candidate

logger = logging.getLogger(__name__)

HIGH_VALUE_ACTIONS = ["purchase", "attend", "like"]

SCORE = 0.8

# How much of the user's own history to consider when looking for peers.
OWN_HISTORY_LIMIT = 100
# Bound on peer events read at each step.
PEER_EVENTS_LIMIT = 1000


def _unique(values) -> list[str]:
    return list(dict.fromkeys(values))


class CollaborativeCandidateGenerator(CandidateGenerator):
    """Candidates liked by users who like what this user likes."""

    @property
    def name(self) -> str:
        return "collaborative"

    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        own = await sources.behavior.query(
            BehaviorFilter(user_ids=[user_id], action_types=HIGH_VALUE_ACTIONS),
            limit=OWN_HISTORY_LIMIT,
        )
        own_targets = _unique(e.target_id for e in own)
        if not own_targets:
            logger.info("No high-value history for user %s", user_id)
            return self.empty()

        overlaps = await sources.behavior.query(
            BehaviorFilter(
                target_ids=own_targets,
                action_types=HIGH_VALUE_ACTIONS,
                exclude_user_ids=[user_id],
            ),
            limit=PEER_EVENTS_LIMIT,
        )
        peers = _unique(e.user_id for e in overlaps)
        if not peers:
            return self.empty()

        peer_events = await sources.behavior.query(
            BehaviorFilter(user_ids=peers, action_types=HIGH_VALUE_ACTIONS),
            limit=PEER_EVENTS_LIMIT,
        )
        target_ids = _unique(e.target_id for e in peer_events)
        if not target_ids:
            return self.empty()

        items = await sources.catalog.query(
            CatalogFilter(ids=target_ids, start_from=utcnow()),
            limit=limit,
            exclude_seen_by=user_id,
        )
        candidates = [
            to_candidate(item, self.name, SCORE, "Based on similar users")
            for item in items
        ]
        return CandidateResult(generator_name=self.name, candidates=candidates[:limit])
