from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class InterestLevel(str, Enum):
    just_browsing = "just_browsing"
    interested = "interested"
    very_interested = "very_interested"
    ready_to_buy = "ready_to_buy"


class Favorite(BaseModel):
    id: str
    user: str
    listing_id: str
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    notes: str | None = None
    priority: Priority = Priority.medium
    interest_level: InterestLevel = InterestLevel.interested
