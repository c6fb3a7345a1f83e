"""Recommendation pipeline: fan out to the strategies, fan in, rank, cache.

Every generator runs concurrently.  A generator that raises or exceeds its
timeout contributes an empty list; the response is assembled from whatever
succeeded.  Only an ``AggregationError`` aborts the request.
"""

import asyncio
import logging
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..metrics import MetricsCollector, timed
from ..models import Organizer, utcnow
from .cache import CacheManager
from .candidates import Candidate, CandidateGenerator, get_generator, list_generators
from .ranking import RankedResult, aggregate
from .stores import DataSources

logger = logging.getLogger(__name__)

RecommendationType = Literal[
    "all", "collaborative", "content_based", "popularity", "location", "category", "social"
]


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class RecommendedItem(BaseModel):
    """A candidate flattened into the shape clients render."""

    id: str
    title: str | None = None
    description: str | None = None
    start_at: datetime | None = None
    venue: str | None = None
    city: str | None = None
    cover_image_url: str | None = None
    category: str | None = None
    organizer: Organizer | None = None
    recommendation_score: float
    recommendation_type: str
    reason: str = ""
    contributing_strategies: list[str] | None = None


class RecommendationSet(BaseModel):
    user_id: str
    type: str
    recommendations: dict[str, list[RecommendedItem]] = Field(default_factory=dict)
    ranked: list[RecommendedItem] | None = None
    failed_strategies: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)


def from_candidate(cand: Candidate) -> RecommendedItem:
    item = cand.item
    return RecommendedItem(
        id=cand.target_id,
        title=item.title if item else None,
        description=item.description if item else None,
        start_at=item.start_time if item else None,
        venue=item.venue if item else None,
        city=item.city if item else None,
        cover_image_url=item.cover_image_url if item else None,
        category=item.category if item else None,
        organizer=item.organizer if item else None,
        recommendation_score=cand.score,
        recommendation_type=cand.strategy,
        reason=cand.reason,
    )


def from_ranked(result: RankedResult) -> RecommendedItem:
    item = result.item
    return RecommendedItem(
        id=result.target_id,
        title=item.title if item else None,
        description=item.description if item else None,
        start_at=item.start_time if item else None,
        venue=item.venue if item else None,
        city=item.city if item else None,
        cover_image_url=item.cover_image_url if item else None,
        category=item.category if item else None,
        organizer=item.organizer if item else None,
        recommendation_score=result.final_score,
        recommendation_type=result.strategy,
        reason=result.reason_text,
        contributing_strategies=result.contributing_strategies,
    )


# ---------------------------------------------------------------------------
# Fan-out / fan-in
# ---------------------------------------------------------------------------

async def _run_generator(
    gen: CandidateGenerator,
    sources: DataSources,
    user_id: str,
    limit: int,
    timeout: float | None,
    metrics: MetricsCollector,
) -> list[Candidate] | None:
    """Run one generator; ``None`` marks a failure."""
    try:
        with timed(metrics, f"recommend:{gen.name}"):
            result = await asyncio.wait_for(
                gen.generate(sources=sources, user_id=user_id, limit=limit),
                timeout=timeout,
            )
    except asyncio.TimeoutError:
        logger.warning("Candidate generator '%s' timed out after %ss", gen.name, timeout)
        metrics.incr(f"recommend:{gen.name}.timeout")
        return None
    except Exception:
        logger.exception("Candidate generator '%s' failed", gen.name)
        metrics.incr(f"recommend:{gen.name}.failed")
        return None
    metrics.incr(f"recommend:{gen.name}.ok")
    return result.candidates[:limit]


async def generate_recommendations(
    sources: DataSources,
    user_id: str,
    limit: int = 10,
    rec_type: RecommendationType = "all",
    metrics: MetricsCollector | None = None,
    generator_timeout: float | None = None,
) -> RecommendationSet:
    """Fan out to the requested strategies and assemble the response.

    With ``rec_type="all"`` every registered generator runs and the merged
    ranking is included; otherwise only the named strategy runs.
    """
    metrics = metrics or MetricsCollector()
    names = list_generators() if rec_type == "all" else [rec_type]
    generators = [g for g in (get_generator(n) for n in names) if g is not None]

    outcomes = await asyncio.gather(*(
        _run_generator(gen, sources, user_id, limit, generator_timeout, metrics)
        for gen in generators
    ))

    per_strategy: dict[str, list[Candidate]] = {}
    failed: list[str] = []
    for gen, outcome in zip(generators, outcomes):
        if outcome is None:
            failed.append(gen.name)
        per_strategy[gen.name] = outcome or []

    ranked = None
    if rec_type == "all":
        ranked = [from_ranked(r) for r in aggregate(per_strategy)[:limit]]

    return RecommendationSet(
        user_id=user_id,
        type=rec_type,
        recommendations={
            name: [from_candidate(c) for c in cands]
            for name, cands in per_strategy.items()
        },
        ranked=ranked,
        failed_strategies=failed,
    )


def owner_key(user_id: str) -> str:
    """Cache prefix owning every cached recommendation set of *user_id*."""
    return f"recs:{user_id}:"


async def recommend(
    sources: DataSources,
    cache: CacheManager,
    user_id: str,
    limit: int = 10,
    rec_type: RecommendationType = "all",
    ttl: int | None = None,
    refresh: bool = False,
    generator_timeout: float | None = None,
) -> RecommendationSet:
    """Serve a cached recommendation set, recomputing on a miss or on *refresh*.

    A recompute replaces every set cached for the user.  Sets with failed
    strategies are not cached, so the next request retries them.
    """
    key = f"{owner_key(user_id)}{rec_type}:{limit}"

    async def compute() -> RecommendationSet:
        return await generate_recommendations(
            sources,
            user_id,
            limit=limit,
            rec_type=rec_type,
            metrics=cache.metrics,
            generator_timeout=generator_timeout,
        )

    if refresh:
        result = await compute()
    else:
        cached = await cache.get(key)
        if cached is not None:
            try:
                return RecommendationSet.model_validate(cached)
            except Exception:
                logger.warning("Discarding undecodable recommendation set %s", key)
        result = await compute()

    if not result.failed_strategies:
        await cache.put(key, result, ttl=ttl, owner=owner_key(user_id))
    return result
