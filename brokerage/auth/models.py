from __future__ import annotations

from pydantic import BaseModel, Field

from ..listings.models import Listing


class Range(BaseModel):
    """Inclusive bounds; 0 means unset."""

    min: float = 0
    max: float = 0


class PreferenceProfile(BaseModel):
    preferred_types: list[str] = Field(default_factory=list)
    preferred_locations: list[str] = Field(default_factory=list)
    budget_range: Range = Field(default_factory=Range)
    bedrooms: Range = Field(default_factory=Range)
    bathrooms: Range = Field(default_factory=Range)

    def is_empty(self) -> bool:
        return not (
            self.preferred_types
            or self.preferred_locations
            or self.budget_range.min
            or self.budget_range.max
            or self.bedrooms.max
            or self.bathrooms.max
        )

    def widen_with(self, listing: Listing) -> "PreferenceProfile":
        """Return a copy widened to include ``listing``.

        Type and city are appended when absent. Numeric bounds are only
        filled while still unset, so the first favorite wins.
        """
        profile = self.model_copy(deep=True)
        prop_type = listing.property_type.value
        if prop_type not in profile.preferred_types:
            profile.preferred_types.append(prop_type)
        if listing.city and listing.city not in profile.preferred_locations:
            profile.preferred_locations.append(listing.city)

        if listing.price:
            if not profile.budget_range.max:
                profile.budget_range.max = listing.price
            if not profile.budget_range.min:
                profile.budget_range.min = listing.price

        if listing.bedrooms and not profile.bedrooms.max:
            profile.bedrooms = Range(min=listing.bedrooms, max=listing.bedrooms)
        if listing.bathrooms and not profile.bathrooms.max:
            profile.bathrooms = Range(min=listing.bathrooms, max=listing.bathrooms)
        return profile


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
