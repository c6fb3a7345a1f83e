from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..lib.cache import RedisCacheStore

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    status: str
    stores: str
    cache: str


@router.get("/health", response_model=HealthResponse, status_code=200)
async def healthcheck():
    return {"status": "ok"}


@router.get("/health/ready", response_model=ReadinessResponse, status_code=200)
async def readiness(request: Request):
    """Report which backends the service is wired to."""
    state = request.app.state
    es = getattr(state, "es", None)
    cache = getattr(state, "cache", None)
    if cache is None:
        return {"status": "starting", "stores": "none", "cache": "none"}
    return {
        "status": "ok",
        "stores": "elasticsearch" if es is not None else "memory",
        "cache": "redis" if isinstance(cache.store, RedisCacheStore) else "memory",
    }
