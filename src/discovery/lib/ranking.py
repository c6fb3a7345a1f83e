"""Merge per-strategy candidate lists into one deterministic ranking."""

from collections.abc import Mapping

from pydantic import BaseModel, Field

from ..errors import AggregationError
from ..models import Item
from .candidates import Candidate

# Earlier strategies win ties on equal scores.
STRATEGY_PRIORITY: tuple[str, ...] = (
    "social",
    "content_based",
    "category",
    "location",
    "collaborative",
    "popularity",
)


def strategy_rank(strategy: str) -> int:
    """Position in ``STRATEGY_PRIORITY``; unknown strategies sort last."""
    try:
        return STRATEGY_PRIORITY.index(strategy)
    except ValueError:
        return len(STRATEGY_PRIORITY)


class RankedResult(BaseModel):
    target_id: str
    final_score: float = Field(..., ge=0.0, le=1.0)
    strategy: str
    contributing_strategies: list[str]
    reason_text: str = ""
    item: Item | None = None


def _by_priority(strategies) -> list[str]:
    return sorted(strategies, key=lambda s: (strategy_rank(s), s))


def aggregate(candidate_lists: Mapping[str, list[Candidate]]) -> list[RankedResult]:
    """Union the candidate lists into a ranking with one entry per target.

    A target proposed by several strategies keeps its highest score and lists
    every contributing strategy; ``strategy`` names the one that produced
    that score.  Ordering is score descending, then that strategy's
    ``STRATEGY_PRIORITY`` position, then ``target_id``.
    """
    best: dict[str, Candidate] = {}
    best_strategy: dict[str, str] = {}
    contributors: dict[str, set[str]] = {}

    for strategy in _by_priority(candidate_lists):
        for cand in candidate_lists[strategy] or []:
            if not 0.0 <= cand.score <= 1.0:
                raise AggregationError(
                    f"Score {cand.score!r} for {cand.target_id} from {strategy} is outside [0, 1]"
                )
            source = cand.strategy or strategy
            contributors.setdefault(cand.target_id, set()).add(source)
            current = best.get(cand.target_id)
            # strategies are visited in priority order, so an equal score never replaces
            if current is None or cand.score > current.score:
                best[cand.target_id] = cand
                best_strategy[cand.target_id] = source
            elif current.item is None and cand.item is not None:
                best[cand.target_id] = current.model_copy(update={"item": cand.item})

    ranked = [
        RankedResult(
            target_id=target_id,
            final_score=cand.score,
            strategy=best_strategy[target_id],
            contributing_strategies=_by_priority(contributors[target_id]),
            reason_text=cand.reason,
            item=cand.item,
        )
        for target_id, cand in best.items()
    ]
    ranked.sort(
        key=lambda r: (
            -r.final_score,
            strategy_rank(r.strategy),
            r.target_id,
        )
    )
    return ranked
