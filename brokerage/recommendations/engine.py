"""
Recommendation engine.

Candidate generators each read the listing catalogue with a different
filter and tag what they return with a ``RecommendationType`` and a fixed
prior score. ``get_buyer_recommendations`` blends four of them in fixed
proportions, drops repeated listings (first occurrence wins) and orders the
rest by score. Missing personalisation inputs degrade to popular listings.
"""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from ..auth.models import PreferenceProfile
from ..auth.users import UserDirectory
from ..favorites.models import InterestLevel
from ..favorites.store import FavoriteStore
from ..listings.models import Listing
from ..listings.store import ListingNotFoundError, ListingQuery, ListingStore
from ..scoring.formulas import round_half_up
from .config import DEFAULT_RECOMMENDATION_CONFIG, RecommendationConfig
from .models import (
    BuyerDashboard,
    DashboardSections,
    DashboardStats,
    FavoriteOut,
    RecommendationCandidate,
    RecommendationItem,
    RecommendationType,
)

logger = logging.getLogger(__name__)

_REASONS = {
    RecommendationType.similar_to_favorites: "Similar to your favorites",
    RecommendationType.location_match: "Matches your preferred location",
    RecommendationType.trending: "Trending in your area",
    RecommendationType.high_location_score: "Excellent location score",
    RecommendationType.nearby_to_favorites: "Near your favorite properties",
    RecommendationType.preference_match: "Matches your preferences",
}


def get_recommendation_reasons(recommendation_type: RecommendationType | str | None) -> str:
    try:
        return _REASONS[RecommendationType(recommendation_type)]
    except ValueError:
        return "Recommended for you"


def deduplicate(candidates: Iterable[RecommendationCandidate]) -> list[RecommendationCandidate]:
    """Keep the first candidate per listing id, preserving order."""
    seen: set[str] = set()
    unique: list[RecommendationCandidate] = []
    for cand in candidates:
        if cand.listing_id in seen:
            continue
        seen.add(cand.listing_id)
        unique.append(cand)
    return unique


def _overall_or_zero(listing: Listing) -> int:
    scores = listing.location_scores
    return (scores.overall_score or 0) if scores else 0


def to_items(candidates: Iterable[RecommendationCandidate]) -> list[RecommendationItem]:
    return [
        RecommendationItem(
            listing=c.listing,
            recommendation_type=c.recommendation_type,
            score=c.score,
            reason=get_recommendation_reasons(c.recommendation_type),
            distance_from_favorite_km=c.distance_from_favorite_km,
        )
        for c in candidates
    ]


class RecommendationEngine:
    def __init__(
        self,
        listings: ListingStore,
        favorites: FavoriteStore,
        users: UserDirectory,
        config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
    ) -> None:
        self.listings = listings
        self.favorites = favorites
        self.users = users
        self.config = config

    # ── Helpers ──────────────────────────────────────────────────────────

    def _tag(
        self,
        listings: Iterable[Listing],
        rec_type: RecommendationType,
    ) -> list[RecommendationCandidate]:
        score = self.config.type_scores[rec_type.value]
        return [
            RecommendationCandidate(listing=listing, recommendation_type=rec_type, score=score)
            for listing in listings
        ]

    def _favorite_listings(self, user_id: str, limit: int) -> list[Listing]:
        """The user's most recent favorites, resolved to listings."""
        resolved: list[Listing] = []
        for fav in self.favorites.list_for_user(user_id, limit=limit):
            try:
                resolved.append(self.listings.get(fav.listing_id))
            except ListingNotFoundError:
                logger.warning("Favorite %s points at missing listing %s", fav.id, fav.listing_id)
        return resolved

    def _share(self, limit: int, key: str) -> int:
        return math.ceil(limit * self.config.blend_shares[key])

    # ── Generators ───────────────────────────────────────────────────────

    def get_popular_listings(
        self,
        limit: int = 6,
        exclude_ids: list[str] | None = None,
    ) -> list[RecommendationCandidate]:
        query = ListingQuery(
            exclude_ids=list(exclude_ids or []),
            sort_by=("featured", "views", "inquiries", "created_at"),
            limit=limit,
        )
        return self._tag(self.listings.find(query), RecommendationType.trending)

    def get_trending_listings(self, limit: int = 6) -> list[RecommendationCandidate]:
        """Active listings created in the last week, most viewed first."""
        since = datetime.now(timezone.utc) - timedelta(days=self.config.trending_window_days)
        query = ListingQuery(created_after=since, sort_by=("views", "inquiries"), limit=limit)
        return self._tag(self.listings.find(query), RecommendationType.trending)

    def get_location_based_recommendations(self, city: str, limit: int = 6) -> list[RecommendationCandidate]:
        query = ListingQuery(city_contains=city, limit=limit)
        return self._tag(self.listings.find(query), RecommendationType.location_match)

    def get_high_location_score_listings(self, limit: int = 6) -> list[RecommendationCandidate]:
        query = ListingQuery(
            min_overall_score=self.config.high_score_threshold,
            sort_by=("overall_score", "featured", "created_at"),
            limit=limit,
        )
        return self._tag(self.listings.find(query), RecommendationType.high_location_score)

    def similar_query(self, favorites: list[Listing], limit: int) -> ListingQuery:
        """Listings sharing a type, a city or the price band of ``favorites``."""
        types = list(dict.fromkeys(fav.property_type.value for fav in favorites))
        cities = list(dict.fromkeys(fav.city for fav in favorites if fav.city))
        avg_price = sum(fav.price for fav in favorites) / len(favorites)

        query = ListingQuery(
            property_types=types,
            cities=cities,
            exclude_ids=[fav.id for fav in favorites],
            match_any=True,
            sort_by=("featured", "views"),
            limit=limit,
        )
        if avg_price > 0:
            band = avg_price * self.config.similar_price_band
            query.price_min = avg_price - band
            query.price_max = avg_price + band
        return query

    def get_similar_to_listings(self, user_id: str, limit: int = 6) -> list[RecommendationCandidate]:
        favorites = self._favorite_listings(user_id, self.config.recent_favorites)
        if not favorites:
            return self.get_popular_listings(limit)
        matches = self.listings.find(self.similar_query(favorites, limit))
        return self._tag(matches, RecommendationType.similar_to_favorites)

    def get_nearby_recommendations(
        self,
        user_id: str,
        radius_km: float | None = None,
        limit: int = 6,
    ) -> list[RecommendationCandidate]:
        """Active listings near each recent favorite, closest first."""
        radius_km = self.config.nearby_radius_km if radius_km is None else radius_km
        favorites = self._favorite_listings(user_id, self.config.recent_favorites)
        if not favorites:
            return self.get_popular_listings(limit)

        per_favorite = math.ceil(limit / len(favorites))
        exclude = [fav.id for fav in favorites]
        score = self.config.type_scores[RecommendationType.nearby_to_favorites.value]

        found: list[RecommendationCandidate] = []
        for fav in favorites:
            if not fav.has_coordinates:
                continue
            query = ListingQuery(exclude_ids=exclude, limit=per_favorite)
            for listing, distance_m in self.listings.near(fav.latitude, fav.longitude, radius_km * 1000, query):
                found.append(RecommendationCandidate(
                    listing=listing,
                    recommendation_type=RecommendationType.nearby_to_favorites,
                    score=score,
                    distance_from_favorite_km=distance_m / 1000,
                ))

        unique = deduplicate(found)
        unique.sort(key=lambda c: c.distance_from_favorite_km)
        return unique[:limit]

    def get_personalized_recommendations(self, user_id: str, limit: int = 6) -> list[RecommendationCandidate]:
        """Listings matching every set preference, topped up with popular ones."""
        try:
            profile = self.users.get_preferences(user_id)
        except KeyError:
            return self.get_popular_listings(limit)
        if profile.is_empty():
            return self.get_popular_listings(limit)

        matches = self._tag(
            self.listings.find(self._preference_query(profile, limit)),
            RecommendationType.preference_match,
        )
        if len(matches) < limit:
            matches += self.get_popular_listings(
                limit - len(matches), exclude_ids=[c.listing_id for c in matches],
            )
        return matches

    @staticmethod
    def _preference_query(profile: PreferenceProfile, limit: int) -> ListingQuery:
        return ListingQuery(
            property_types=list(profile.preferred_types),
            cities=list(profile.preferred_locations),
            price_min=profile.budget_range.min or None,
            price_max=profile.budget_range.max or None,
            bedrooms_min=profile.bedrooms.min or None,
            bedrooms_max=profile.bedrooms.max or None,
            bathrooms_min=profile.bathrooms.min or None,
            bathrooms_max=profile.bathrooms.max or None,
            limit=limit,
        )

    # ── Blender ──────────────────────────────────────────────────────────

    def _blend(self, user_id: str, limit: int) -> list[RecommendationCandidate]:
        profile = self.users.get_preferences(user_id)
        has_favorites = bool(self.favorites.list_for_user(user_id, limit=1))
        if not has_favorites and profile.is_empty():
            return self.get_popular_listings(limit)

        city = profile.preferred_locations[0] if profile.preferred_locations else self.config.fallback_city
        # The similar slot keeps its tag even when it fell back to popular listings
        similar = self._tag(
            (c.listing for c in self.get_similar_to_listings(user_id, self._share(limit, "similar"))),
            RecommendationType.similar_to_favorites,
        )
        candidates = (
            similar
            + self.get_location_based_recommendations(city, self._share(limit, "location"))
            + self.get_popular_listings(self._share(limit, "popular"))
            + self.get_high_location_score_listings(self._share(limit, "high_score"))
        )
        ranked = deduplicate(candidates)
        ranked.sort(key=lambda c: c.score, reverse=True)
        return ranked[:limit]

    def get_buyer_recommendations(self, user_id: str, limit: int = 12) -> list[RecommendationCandidate]:
        logger.info("Building buyer recommendations for %s (limit=%d)", user_id, limit)
        try:
            return self._blend(user_id, limit)
        except Exception:
            logger.exception("Personalised recommendations failed for %s, using popular listings", user_id)
            return self.get_popular_listings(limit)

    # ── Dashboard ────────────────────────────────────────────────────────

    def get_buyer_dashboard(self, user_id: str) -> BuyerDashboard:
        sizes = self.config.dashboard_sections
        personalized = self.get_buyer_recommendations(user_id, sizes["personalized"])
        nearby = self.get_nearby_recommendations(user_id, limit=sizes["nearby"])
        high_score = self.get_high_location_score_listings(sizes["high_score"])
        trending = self.get_trending_listings(sizes["trending"])

        favorites = self.favorites.list_for_user(user_id)
        scored = [_overall_or_zero(c.listing) for c in personalized]
        stats = DashboardStats(
            total_favorites=len(favorites),
            high_interest_favorites=sum(1 for f in favorites if f.interest_level == InterestLevel.very_interested),
            ready_to_buy_favorites=sum(1 for f in favorites if f.interest_level == InterestLevel.ready_to_buy),
            avg_location_score=round_half_up(sum(scored) / len(scored)) if scored else 0,
        )

        recent = []
        for fav in favorites[: self.config.dashboard_recent_favorites]:
            try:
                listing = self.listings.get(fav.listing_id)
            except ListingNotFoundError:
                listing = None
            recent.append(FavoriteOut(favorite=fav, listing=listing))

        return BuyerDashboard(
            user=user_id,
            stats=stats,
            recommendations=DashboardSections(
                personalized=to_items(personalized),
                nearby=to_items(nearby),
                high_score=to_items(high_score),
                trending=to_items(trending),
            ),
            recent_favorites=recent,
            generated_at=datetime.now(timezone.utc),
        )
