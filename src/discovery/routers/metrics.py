"""Metrics router – Prometheus scrape endpoint plus a JSON snapshot."""

from fastapi import APIRouter, Depends, Query, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..security import verify_api_key

router = APIRouter(tags=["metrics"], dependencies=[Depends(verify_api_key)])


@router.get("/metrics")
async def metrics_scrape(request: Request) -> Response:
    return Response(content=request.app.state.metrics.render(), media_type=CONTENT_TYPE_LATEST)


@router.get("/metrics/snapshot")
async def metrics_snapshot(
    request: Request,
    flush: bool = Query(False, description="Reset the counters after reading them"),
) -> dict:
    collector = request.app.state.metrics
    return collector.flush() if flush else collector.snapshot()
