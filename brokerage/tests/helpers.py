from __future__ import annotations

from datetime import datetime, timezone

from brokerage.listings.models import Listing
from brokerage.scoring.models import LocationScoreResult


def make_listing(
    listing_id: str,
    city: str = "Pune",
    property_type: str = "apartment",
    price: float = 5_000_000,
    lat: float | None = 18.52,
    lon: float | None = 73.85,
    overall: int | None = None,
    views: int = 0,
    inquiries: int = 0,
    featured: bool = False,
    status: str = "active",
    bedrooms: int | None = 2,
    bathrooms: int | None = 2,
    created_at: datetime | None = None,
    owner: str = "owner",
) -> Listing:
    scores = None
    if overall is not None:
        scores = LocationScoreResult(
            amenity_score=overall,
            environment_score=overall,
            safety_score=overall,
            pollution_score=overall,
            overall_score=overall,
            scores_calculated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
    return Listing(
        id=listing_id,
        title=f"Listing {listing_id}",
        property_type=property_type,
        price=price,
        city=city,
        latitude=lat,
        longitude=lon,
        status=status,
        featured=featured,
        views=views,
        inquiries=inquiries,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        owner=owner,
        created_at=created_at or datetime.now(timezone.utc),
        location_scores=scores,
    )
