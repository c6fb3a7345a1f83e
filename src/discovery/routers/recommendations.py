"""Recommendations router – personalized recommendation sets.

GET /recommendations/strategies
    List available strategies.

GET /recommendations
    Per-strategy candidate lists for the caller, plus the merged ranking
    when ``type=all``.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from ..lib.candidates import list_generators
from ..lib.recommend import RecommendationType, RecommendedItem, recommend
from ..security import RequireCaller, ensure_same_user, verify_api_key

router = APIRouter(tags=["recommendations"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class RecommendationResponse(BaseModel):
    success: bool = True
    user_id: str
    type: str
    recommendations: dict[str, list[RecommendedItem]] = Field(default_factory=dict)
    ranked: list[RecommendedItem] | None = Field(
        None, description="Merged ranking across strategies (type=all only)"
    )
    failed_strategies: list[str] = Field(
        default_factory=list,
        description="Strategies that failed or timed out and contributed nothing",
    )
    generated_at: datetime


class StrategyListResponse(BaseModel):
    success: bool = True
    strategies: list[str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/recommendations/strategies", response_model=StrategyListResponse)
async def recommendations_list_strategies() -> StrategyListResponse:
    """Return the names of all registered recommendation strategies."""
    return StrategyListResponse(strategies=list_generators())


@router.get("/recommendations", response_model=RecommendationResponse)
async def recommendations_get(
    request: Request,
    caller_id: RequireCaller,
    user_id: str = Query(..., min_length=1, description="User to recommend for; must be the caller"),
    limit: int = Query(10, ge=1, le=100),
    type: RecommendationType = Query("all", description="A single strategy, or 'all'"),
    refresh: bool = Query(False, description="Recompute even when a cached set exists"),
) -> RecommendationResponse:
    """Return recommendations for the calling user.

    A strategy that fails or times out contributes an empty list and is
    named in ``failed_strategies``; the request itself still succeeds.
    """
    ensure_same_user(caller_id, user_id)

    state = request.app.state
    result = await recommend(
        state.sources,
        state.cache,
        user_id,
        limit=limit,
        rec_type=type,
        ttl=state.settings.recommendation_cache_ttl_seconds,
        refresh=refresh,
        generator_timeout=state.settings.generator_timeout_seconds,
    )
    if result.failed_strategies:
        logger.warning(
            "Partial recommendations for %s; failed: %s",
            user_id,
            ", ".join(result.failed_strategies),
        )
    return RecommendationResponse(**result.model_dump())
