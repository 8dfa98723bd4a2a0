"""User preference lookup boundary."""

import threading
from collections.abc import Mapping
from typing import Optional, Protocol, Union

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from curio.data.schemas import UserPreferences
from curio.errors import NotFoundError, ValidationError


class UserPreferenceLookup(Protocol):
    """Resolves a user to their declared preferences."""

    def get(self, user_id: str) -> UserPreferences:
        """Raises NotFoundError when the user does not exist."""
        ...


class InMemoryPreferenceStore:
    """
    Registered users and their preferences, kept in memory.

    A registered user without declared preferences resolves to an empty
    :class:`UserPreferences`, which the content-based scorer treats as cold start.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._preferences: dict[str, Optional[UserPreferences]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._preferences)

    def register_user(self, user_id: str) -> None:
        if not user_id:
            raise ValidationError("User id must be non-empty")
        with self._lock:
            self._preferences.setdefault(user_id, None)

    def put(self, preferences: Union[UserPreferences, Mapping]) -> UserPreferences:
        """Store preferences, registering the user if needed."""
        if not isinstance(preferences, UserPreferences):
            try:
                preferences = UserPreferences.model_validate(preferences)
            except PydanticValidationError as exc:
                raise ValidationError.from_pydantic(exc, "preferences") from exc

        with self._lock:
            self._preferences[preferences.user_id] = preferences
        logger.debug(f"Stored preferences for user {preferences.user_id}")
        return preferences

    def exists(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._preferences

    def users(self) -> list[str]:
        with self._lock:
            return sorted(self._preferences)

    def get(self, user_id: str) -> UserPreferences:
        with self._lock:
            if user_id not in self._preferences:
                raise NotFoundError("user", user_id)
            preferences = self._preferences[user_id]
        return preferences or UserPreferences(user_id=user_id)
