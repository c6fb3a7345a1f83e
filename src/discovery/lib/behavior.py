"""Behavior collector: validates and appends user actions to the behavior log."""

import logging

from ..errors import ValidationError
from ..models import ACTION_TYPES, BehaviorEvent
from .stores import BehaviorStore

logger = logging.getLogger(__name__)


async def record_behavior(
    store: BehaviorStore,
    user_id: str | None,
    target_id: str | None,
    action_type: str | None,
    metadata: dict | None = None,
    session_id: str | None = None,
) -> str:
    """Append one behavior event and return its id.

    Raises ``ValidationError`` before touching the store when a required field
    is missing or the action type is unknown.
    """
    if not user_id:
        raise ValidationError("user_id is required")
    if not target_id or not action_type:
        raise ValidationError("target_id and action_type are required")
    if action_type not in ACTION_TYPES:
        raise ValidationError(
            f"Unknown action_type '{action_type}'; expected one of {', '.join(ACTION_TYPES)}"
        )

    event = BehaviorEvent(
        user_id=user_id,
        target_id=target_id,
        action_type=action_type,
        metadata=metadata or {},
        session_id=session_id,
    )
    behavior_id = await store.append(event)
    logger.info("Recorded %s on %s for user %s", action_type, target_id, user_id)
    return behavior_id
