"""
User favorites, one record per (user, listing) pair.

Favorites are the main personalisation signal: the recommendation engine
reads a user's most recent ones, and adding one widens the user's
preference profile.
"""
from __future__ import annotations

import logging
import uuid

from .models import Favorite, InterestLevel, Priority

logger = logging.getLogger(__name__)


class DuplicateFavoriteError(Exception):
    pass


class FavoriteNotFoundError(KeyError):
    pass


class FavoriteStore:
    def __init__(self) -> None:
        self._favorites: dict[str, Favorite] = {}

    def __len__(self) -> int:
        return len(self._favorites)

    def _find(self, user: str, listing_id: str) -> Favorite | None:
        for fav in self._favorites.values():
            if fav.user == user and fav.listing_id == listing_id:
                return fav
        return None

    def add(
        self,
        user: str,
        listing_id: str,
        notes: str | None = None,
        priority: Priority = Priority.medium,
        interest_level: InterestLevel = InterestLevel.interested,
    ) -> Favorite:
        """Save a favorite. Raises ``DuplicateFavoriteError`` if the pair exists."""
        if self._find(user, listing_id) is not None:
            raise DuplicateFavoriteError(f"{user} already favorited {listing_id}")
        fav = Favorite(
            id=uuid.uuid4().hex[:12],
            user=user,
            listing_id=listing_id,
            notes=notes,
            priority=priority,
            interest_level=interest_level,
        )
        self._favorites[fav.id] = fav
        logger.info("User %s favorited listing %s", user, listing_id)
        return fav

    def remove(self, user: str, listing_id: str) -> Favorite:
        """Delete the user's favorite for a listing; another user's favorite counts as absent."""
        fav = self._find(user, listing_id)
        if fav is None:
            raise FavoriteNotFoundError(listing_id)
        del self._favorites[fav.id]
        return fav

    def list_for_user(self, user: str, limit: int | None = None) -> list[Favorite]:
        """Most recent first."""
        # Newest insert first among equal timestamps
        favs = sorted(
            [f for f in reversed(self._favorites.values()) if f.user == user],
            key=lambda f: f.added_at,
            reverse=True,
        )
        return favs if limit is None else favs[:limit]

    def reset(self) -> None:
        self._favorites.clear()


_store = FavoriteStore()


def get_favorite_store() -> FavoriteStore:
    return _store


def reset_favorite_store() -> None:
    _store.reset()
