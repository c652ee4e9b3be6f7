from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from ..scoring.models import LocationScoreResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PropertyType(str, Enum):
    apartment = "apartment"
    house = "house"
    villa = "villa"
    commercial = "commercial"
    land = "land"
    office = "office"
    shop = "shop"


class ListingType(str, Enum):
    sale = "sale"
    rent = "rent"


class ListingStatus(str, Enum):
    active = "active"
    under_offer = "under_offer"
    sold = "sold"
    rented = "rented"
    inactive = "inactive"


class Listing(BaseModel):
    id: str
    title: str
    description: str = ""
    property_type: PropertyType
    listing_type: ListingType = ListingType.sale
    price: float = Field(..., ge=0)
    currency: str = "INR"
    bedrooms: int | None = None
    bathrooms: int | None = None
    city: str = ""
    state: str = ""
    latitude: float | None = None
    longitude: float | None = None
    status: ListingStatus = ListingStatus.active
    featured: bool = False
    owner: str = ""
    views: int = 0
    inquiries: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    location_scores: LocationScoreResult | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class ListingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    property_type: PropertyType
    listing_type: ListingType = ListingType.sale
    price: float = Field(..., gt=0)
    currency: str = "INR"
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: int | None = Field(default=None, ge=0)
    city: str = Field(..., min_length=1)
    state: str = ""
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    status: ListingStatus = ListingStatus.active
    featured: bool = False
