"""Behavior router – records user actions.

POST /behavior
    Append one behavior event for the caller and drop their cached
    recommendation sets.
"""

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from ..lib.behavior import record_behavior
from ..lib.recommend import owner_key
from ..security import RequireCaller, ensure_same_user, verify_api_key

router = APIRouter(tags=["behavior"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


class BehaviorEventRequest(BaseModel):
    """Request body for the behavior endpoint.

    ``target_id`` and ``action_type`` are required; they are optional here so
    that a missing value is reported through the service's own validation
    error rather than a schema error.
    """

    target_id: str | None = Field(None, description="Catalog id the action was taken on")
    action_type: str | None = Field(None, description="view, like, attend, purchase or save")
    metadata: dict | None = None
    session_id: str | None = None
    user_id: str | None = Field(None, description="Defaults to the caller; must match it when given")


class BehaviorEventResponse(BaseModel):
    success: bool = True
    behavior_id: str
    message: str = "Behavior tracked successfully"


@router.post("/behavior", response_model=BehaviorEventResponse)
async def behavior_create(
    request: Request,
    payload: BehaviorEventRequest,
    caller_id: RequireCaller,
) -> BehaviorEventResponse:
    if payload.user_id is not None:
        ensure_same_user(caller_id, payload.user_id)

    state = request.app.state
    behavior_id = await record_behavior(
        state.sources.behavior,
        user_id=caller_id,
        target_id=payload.target_id,
        action_type=payload.action_type,
        metadata=payload.metadata,
        session_id=payload.session_id,
    )
    # the exclusion set changed, so cached sets are stale
    await state.cache.invalidate(owner_key(caller_id))
    return BehaviorEventResponse(behavior_id=behavior_id)
