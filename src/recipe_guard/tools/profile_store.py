"""User profile store.

The pipeline only reads profiles; persistence lives elsewhere.
"""

from typing import Mapping, Optional, Protocol

from recipe_guard.models.models import UserProfile
from recipe_guard.utils.logger import logger


class ProfileStore(Protocol):
    def get_profile(self, user_id: str) -> UserProfile: ...


class InMemoryProfileStore:
    """Dict-backed store. Unknown users get ``UserProfile.default()``."""

    def __init__(self, profiles: Optional[Mapping[str, UserProfile]] = None) -> None:
        self._profiles: dict[str, UserProfile] = dict(profiles or {})

    def get_profile(self, user_id: str) -> UserProfile:
        profile = self._profiles.get(user_id)
        if profile is None:
            logger.debug(f"No profile for user {user_id}, using defaults")
            return UserProfile.default()
        return profile

    def save_profile(self, user_id: str, profile: UserProfile) -> None:
        self._profiles[user_id] = profile
