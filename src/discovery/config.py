"""Service configuration.

Values come from the environment (optionally a ``.env`` file, loaded in the
package ``__init__``).  ``get_settings`` caches one ``Settings`` instance per
process; tests build their own ``Settings`` directly instead.
"""

import os
from functools import lru_cache

from pydantic import BaseModel, Field


class PopularityWeights(BaseModel):
    """Weights blending raw engagement into a popularity score.

    These are tunables, not a contract: the raw score is
    ``views * view_weight + likes * like_weight`` plus the flag bonuses, and
    is normalized against the largest raw score of the batch.
    """

    view_weight: float = Field(0.3, ge=0)
    like_weight: float = Field(0.5, ge=0)
    featured_bonus: float = Field(100.0, ge=0)
    verified_bonus: float = Field(50.0, ge=0)
    fallback_score: float = Field(
        0.7, ge=0, le=1, description="Score used when an item carries no engagement signal"
    )


class Settings(BaseModel):
    es_url: str | None = None
    es_api_key: str | None = None
    redis_url: str | None = None
    log_level: str = "INFO"

    generator_timeout_seconds: float | None = Field(5.0, gt=0)
    recommendation_cache_ttl_seconds: int | None = Field(
        None, description="None keeps recommendation sets until the next recompute"
    )
    search_cache_ttl_seconds: int = Field(30, ge=0)
    search_batch_size: int = Field(500, ge=1, description="Catalog items read per round trip while searching")
    search_max_results: int = Field(
        10_000, ge=1, le=10_000, description="Max matching catalog items considered per search"
    )
    trending_hours: int = Field(24, ge=1)
    suggestion_days: int = Field(7, ge=1)

    popularity: PopularityWeights = Field(default_factory=PopularityWeights)


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


def settings_from_env() -> Settings:
    """Build ``Settings`` from environment variables, falling back to defaults."""
    defaults = PopularityWeights()
    weights = PopularityWeights(
        view_weight=_env_float("POPULARITY_VIEW_WEIGHT", defaults.view_weight),
        like_weight=_env_float("POPULARITY_LIKE_WEIGHT", defaults.like_weight),
        featured_bonus=_env_float("POPULARITY_FEATURED_BONUS", defaults.featured_bonus),
        verified_bonus=_env_float("POPULARITY_VERIFIED_BONUS", defaults.verified_bonus),
        fallback_score=_env_float("POPULARITY_FALLBACK_SCORE", defaults.fallback_score),
    )
    return Settings(
        es_url=os.environ.get("ES_URL") or None,
        es_api_key=os.environ.get("ES_API_KEY") or None,
        redis_url=os.environ.get("REDIS_URL") or None,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        generator_timeout_seconds=_env_float("GENERATOR_TIMEOUT_SECONDS", 5.0),
        recommendation_cache_ttl_seconds=_env_int("RECOMMENDATION_CACHE_TTL_SECONDS", None),
        search_cache_ttl_seconds=_env_int("SEARCH_CACHE_TTL_SECONDS", 30),
        search_batch_size=_env_int("SEARCH_BATCH_SIZE", 500),
        search_max_results=_env_int("SEARCH_MAX_RESULTS", 10_000),
        trending_hours=_env_int("TRENDING_HOURS", 24),
        suggestion_days=_env_int("SUGGESTION_DAYS", 7),
        popularity=weights,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return settings_from_env()
