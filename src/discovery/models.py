from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field

ActionType = Literal["view", "like", "attend", "purchase", "save"]

ACTION_TYPES: tuple[str, ...] = ("view", "like", "attend", "purchase", "save")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class BehaviorEvent(BaseModel):
    """One logged user action.  Written once, never updated."""

    model_config = {"frozen": True}

    id: str | None = Field(None, description="Assigned by the behavior store on append")
    user_id: str
    target_id: str
    action_type: ActionType
    metadata: dict = Field(default_factory=dict)
    session_id: str | None = None
    timestamp: UtcDatetime = Field(default_factory=utcnow)


class GeoPoint(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class Organizer(BaseModel):
    id: str
    name: str | None = None
    verified: bool = False


class EngagementMetrics(BaseModel):
    views: int | None = Field(None, ge=0)
    likes: int | None = Field(None, ge=0)
    engagement_score: float | None = Field(
        None, description="Precomputed engagement in [0, 1], used as-is when present"
    )

    @property
    def is_empty(self) -> bool:
        return self.views is None and self.likes is None and self.engagement_score is None


class Item(BaseModel):
    """A catalog item (an event in the default catalog)."""

    id: str
    kind: str = "event"
    title: str
    description: str | None = None
    category: str | None = None
    city: str | None = None
    venue: str | None = None
    location: GeoPoint | None = None
    tags: list[str] = Field(default_factory=list)
    start_time: UtcDatetime | None = None
    created_at: UtcDatetime | None = None
    price: float | None = Field(None, ge=0)
    cover_image_url: str | None = None
    organizer: Organizer | None = None
    engagement: EngagementMetrics = Field(default_factory=EngagementMetrics)
    is_featured: bool = False


class UserPreferences(BaseModel):
    user_id: str
    favorite_categories: list[str] = Field(default_factory=list)


class QueryLogEntry(BaseModel):
    """A search term as typed by a caller, lower-cased and whitespace-normalized."""

    term: str
    user_id: str | None = None
    timestamp: UtcDatetime = Field(default_factory=utcnow)


def normalize_term(text: str | None) -> str:
    return " ".join((text or "").strip().lower().split())
