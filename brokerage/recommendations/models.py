from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from ..favorites.models import Favorite, InterestLevel, Priority
from ..listings.models import Listing


class RecommendationType(str, Enum):
    """Which generator produced a candidate.

    The first five are the types the buyer blend and the dashboard emit.
    ``preference_match`` is an extension produced only by
    ``/recommendations/matching`` and never appears in a blended list.
    """

    similar_to_favorites = "similar_to_favorites"
    location_match = "location_match"
    trending = "trending"
    high_location_score = "high_location_score"
    nearby_to_favorites = "nearby_to_favorites"
    preference_match = "preference_match"


class RecommendationCandidate(BaseModel):
    """A listing tagged with the generator that produced it. Never persisted."""

    listing: Listing
    recommendation_type: RecommendationType
    score: int = Field(..., ge=0, le=100)
    distance_from_favorite_km: float | None = None

    @property
    def listing_id(self) -> str:
        return self.listing.id


class RecommendationItem(BaseModel):
    listing: Listing
    recommendation_type: RecommendationType
    score: int
    reason: str
    distance_from_favorite_km: float | None = None


class RecommendationResponse(BaseModel):
    type: str
    recommendations: list[RecommendationItem]
    count: int


class FavoriteRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)
    notes: str | None = Field(default=None, max_length=1000)
    priority: Priority = Priority.medium
    interest_level: InterestLevel = InterestLevel.interested


class FavoriteOut(BaseModel):
    favorite: Favorite
    listing: Listing | None = None


class UpdatePreferencesRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)


class DashboardStats(BaseModel):
    total_favorites: int
    high_interest_favorites: int
    ready_to_buy_favorites: int
    avg_location_score: int


class DashboardSections(BaseModel):
    personalized: list[RecommendationItem]
    nearby: list[RecommendationItem]
    high_score: list[RecommendationItem]
    trending: list[RecommendationItem]


class BuyerDashboard(BaseModel):
    user: str
    stats: DashboardStats
    recommendations: DashboardSections
    recent_favorites: list[FavoriteOut]
    generated_at: datetime
