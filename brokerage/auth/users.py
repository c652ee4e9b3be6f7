from __future__ import annotations

import logging
from typing import Any

import bcrypt

from .models import PreferenceProfile

logger = logging.getLogger(__name__)

ROLES = ("buyer", "property_owner", "broker")


class UnknownUserError(KeyError):
    pass


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


class UserDirectory:
    """In-memory user records: password hash, role and preference profile."""

    def __init__(self) -> None:
        self._users: dict[str, dict[str, Any]] = {}

    def add_user(self, username: str, password: str, role: str) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        self._users[username] = {
            "password_hash": _hash_password(password),
            "role": role,
            "preferences": PreferenceProfile(),
        }

    def seed(self) -> None:
        """Pre-seed demo users."""
        self.add_user("buyer", "buyer123", "buyer")
        self.add_user("buyer2", "buyer123", "buyer")
        self.add_user("owner", "owner123", "property_owner")
        self.add_user("owner2", "owner123", "property_owner")
        self.add_user("broker", "broker123", "broker")

    def authenticate(self, username: str, password: str) -> dict[str, Any] | None:
        """Verify credentials. Returns ``{username, role}`` or ``None``."""
        record = self._users.get(username)
        if record and _verify_password(password, record["password_hash"]):
            return {"username": username, "role": record["role"]}
        return None

    def _record(self, username: str) -> dict[str, Any]:
        try:
            return self._users[username]
        except KeyError:
            raise UnknownUserError(username) from None

    def get_preferences(self, username: str) -> PreferenceProfile:
        return self._record(username)["preferences"].model_copy(deep=True)

    def save_preferences(self, username: str, profile: PreferenceProfile) -> None:
        self._record(username)["preferences"] = profile
        logger.debug("Saved preferences for %s", username)

    def reset_preferences(self) -> None:
        for record in self._users.values():
            record["preferences"] = PreferenceProfile()


_directory = UserDirectory()
_directory.seed()


def get_user_directory() -> UserDirectory:
    return _directory
