"""Dependency providers. Tests swap these out through ``app.dependency_overrides``."""
from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from .auth.users import UserDirectory, get_user_directory as _user_directory
from .favorites.store import FavoriteStore, get_favorite_store as _favorite_store, reset_favorite_store
from .listings.store import ListingStore, get_listing_store as _listing_store, reset_listing_store
from .recommendations.engine import RecommendationEngine
from .recommendations.preferences import PreferenceUpdater
from .scoring.service import LocationScoreService


def get_listing_store() -> ListingStore:
    return _listing_store()


def get_favorite_store() -> FavoriteStore:
    return _favorite_store()


def get_user_directory() -> UserDirectory:
    return _user_directory()


@lru_cache(maxsize=1)
def get_score_service() -> LocationScoreService:
    return LocationScoreService()


def get_recommendation_engine(
    listings: ListingStore = Depends(get_listing_store),
    favorites: FavoriteStore = Depends(get_favorite_store),
    users: UserDirectory = Depends(get_user_directory),
) -> RecommendationEngine:
    return RecommendationEngine(listings, favorites, users)


_updater: PreferenceUpdater | None = None


def get_preference_updater() -> PreferenceUpdater:
    """Process-wide updater; it keeps the job records."""
    global _updater
    if _updater is None:
        _updater = PreferenceUpdater(get_listing_store(), get_user_directory())
    return _updater


def reset_state() -> None:
    """Drop all in-memory state: catalogue, favorites, preferences and job records."""
    global _updater
    reset_listing_store()
    reset_favorite_store()
    get_user_directory().reset_preferences()
    _updater = None
