"""Shared fixtures: in-process data sources and factories for seeding them."""

from datetime import timedelta

import pytest

from .lib.stores.memory import memory_sources
from .models import BehaviorEvent, EngagementMetrics, Item, utcnow


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
def sources():
    return memory_sources()


@pytest.fixture
def make_item(now):
    """Build an upcoming catalog item; keyword arguments override the defaults."""

    def _make(item_id: str, **overrides) -> Item:
        fields = {
            "id": item_id,
            "title": f"Event {item_id}",
            "category": "music",
            "city": "Berlin",
            "start_time": now + timedelta(days=3),
            "created_at": now - timedelta(hours=1),
        }
        if "views" in overrides or "likes" in overrides:
            fields["engagement"] = EngagementMetrics(
                views=overrides.pop("views", None),
                likes=overrides.pop("likes", None),
            )
        fields.update(overrides)
        return Item(**fields)

    return _make


@pytest.fixture
def add_items(sources, make_item):
    def _add(*item_ids: str, **overrides) -> list[Item]:
        items = [make_item(i, **overrides) for i in item_ids]
        for item in items:
            sources.catalog.add(item)
        return items

    return _add


@pytest.fixture
def add_event(sources, now):
    """Log a behavior event; ``minutes_ago`` controls its timestamp."""

    def _add(user_id: str, target_id: str, action_type: str, minutes_ago: int = 0) -> str:
        return sources.behavior.add(
            BehaviorEvent(
                user_id=user_id,
                target_id=target_id,
                action_type=action_type,
                timestamp=now - timedelta(minutes=minutes_ago),
            )
        )

    return _add
