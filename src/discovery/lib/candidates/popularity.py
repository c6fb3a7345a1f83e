"""Popularity candidate generator.

Returns upcoming items ranked by catalog-wide engagement.  The score blends:

* an explicit ``engagement_score`` when the catalog already carries one in
  [0, 1] (used as-is), otherwise
* a **raw blend** of view and like counts plus fixed bonuses for featured
  items and verified organizers, normalized against the largest raw value
  in the batch so the top item scores 1.0.

Items with no engagement signal at all receive the configured fallback
score.  The weights are tunables (``PopularityWeights``), not a contract.
"""

import logging

from ...config import PopularityWeights
from ...models import Item, utcnow
from ..stores import CatalogFilter, DataSources
from .base import Candidate, CandidateGenerator, CandidateResult, to_candidate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

# Read this many times ``limit`` items so re-scoring can reorder them.
OVERSAMPLE = 3

REASON = "Popular event with high engagement"


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

def raw_popularity(item: Item, weights: PopularityWeights) -> float | None:
    """Weighted engagement blend, or ``None`` when the item has no signal."""
    eng = item.engagement
    has_counts = eng.views is not None or eng.likes is not None
    verified = item.organizer is not None and item.organizer.verified
    if not has_counts and not item.is_featured and not verified:
        return None
    raw = (eng.views or 0) * weights.view_weight + (eng.likes or 0) * weights.like_weight
    if item.is_featured:
        raw += weights.featured_bonus
    if verified:
        raw += weights.verified_bonus
    return raw


def popularity_scores(items: list[Item], weights: PopularityWeights) -> dict[str, float]:
    """Map item id to a popularity score in [0, 1]."""
    raws = {item.id: raw_popularity(item, weights) for item in items}
    ceiling = max((r for r in raws.values() if r is not None), default=0.0)

    scores: dict[str, float] = {}
    for item in items:
        explicit = item.engagement.engagement_score
        raw = raws[item.id]
        if explicit is not None and 0.0 <= explicit <= 1.0:
            scores[item.id] = explicit
        elif raw is None or ceiling <= 0:
            scores[item.id] = weights.fallback_score
        else:
            scores[item.id] = raw / ceiling
    return scores


# ---------------------------------------------------------------------------
# Generator class
# ---------------------------------------------------------------------------

class PopularityCandidateGenerator(CandidateGenerator):
    """Returns upcoming popular items.

    The ranking itself is the same for every user; ``user_id`` only drives
    the exclusion of items the user has already interacted with.
    """

    def __init__(self, weights: PopularityWeights | None = None):
        self.weights = weights or PopularityWeights()

    @property
    def name(self) -> str:
        return "popularity"

    async def generate(
        self,
        sources: DataSources,
        user_id: str,
        limit: int = 10,
    ) -> CandidateResult:
        items = await sources.catalog.query(
            CatalogFilter(start_from=utcnow()),
            limit=limit * OVERSAMPLE,
            order_by="-engagement",
            exclude_seen_by=user_id,
        )
        if not items:
            return self.empty()

        scores = popularity_scores(items, self.weights)
        ranked: list[Candidate] = [
            to_candidate(item, self.name, scores[item.id], REASON) for item in items
        ]
        ranked.sort(key=lambda c: c.target_id)
        ranked.sort(key=lambda c: c.score, reverse=True)
        return CandidateResult(generator_name=self.name, candidates=ranked[:limit])
