"""
In-memory graph and profile stores.

Used by tests and local runs without a database. Each store keeps its own
copies of what it is given and hands out copies on read, so callers never
share mutable state with the store. Updates run without awaiting, which makes
each one atomic on the event loop.
"""

from typing import AsyncIterator, Dict, List, Optional

import structlog

from prefrec.core.exceptions import (
    ConfigurationError,
    InvalidUpdateRequestError,
    MutationAlreadyAppliedError,
)
from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    UpdateAction,
    UpdateRequest,
    UserProfile,
)
from prefrec.persistence.idempotency import build_idempotency_flag

log = structlog.get_logger(__name__)


class InMemoryPreferenceGraph:
    """Correlation graph held in a dict, with the same fingerprint guard as SQLite."""

    def __init__(self, preferences: Optional[List[Preference]] = None):
        self._preferences: Dict[PreferenceKey, Preference] = {}
        self._last_modified_by: Dict[PreferenceKey, str] = {}
        for preference in preferences or []:
            self._preferences[preference.key] = preference.copy()

    def __len__(self) -> int:
        return len(self._preferences)

    async def get_preference(self, key: PreferenceKey) -> Optional[Preference]:
        preference = self._preferences.get(key)
        return preference.copy() if preference else None

    async def put_preference(self, preference: Preference) -> Preference:
        self._preferences[preference.key] = preference.copy()
        self._last_modified_by.pop(preference.key, None)
        return preference.copy()

    async def delete_preference(self, key: PreferenceKey) -> bool:
        self._last_modified_by.pop(key, None)
        return self._preferences.pop(key, None) is not None

    async def batch_get_preferences(
        self, category: PreferenceCategory, batch_size: int
    ) -> AsyncIterator[List[Preference]]:
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")

        category = PreferenceCategory(category)
        keys = sorted(k for k in self._preferences if k.category == category)
        for start in range(0, len(keys), batch_size):
            batch = [
                self._preferences[k].copy()
                for k in keys[start : start + batch_size]
                if k in self._preferences
            ]
            if batch:
                yield batch

    async def update_preference(
        self,
        request: UpdateRequest,
        user: UserProfile,
        action: UpdateAction,
    ) -> Preference:
        key = request.target.key
        fingerprint = build_idempotency_flag(user, request, action)
        if self._last_modified_by.get(key) == fingerprint:
            raise MutationAlreadyAppliedError(
                f"Update to {key.to_storage_key()} was already applied",
                fingerprint=fingerprint,
            )

        # Apply to a working copy and swap in, so a failure leaves nothing half-written
        current = self._preferences.get(key)
        updated = (
            current.copy()
            if current
            else Preference(key.id, key.category, popularity=0)
        )
        updated.adjust_popularity(request.popularity_delta)
        if updated.popularity < 0:
            raise InvalidUpdateRequestError(
                f"Update to {key.to_storage_key()} would leave popularity at "
                f"{updated.popularity}"
            )
        for destination, update in request.correlation_updates.items():
            updated.adjust_correlation(destination, update.delta)

        self._preferences[key] = updated
        self._last_modified_by[key] = fingerprint
        return updated.copy()


class InMemoryUserProfileStore:
    """User profiles held in a dict."""

    def __init__(self):
        self._profiles: Dict[str, UserProfile] = {}

    @staticmethod
    def _copy(profile: UserProfile) -> UserProfile:
        return UserProfile(profile.id, profile.preferences)

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self._profiles.get(user_id)
        return self._copy(profile) if profile else None

    async def write_profile(self, profile: UserProfile) -> UserProfile:
        self._profiles[profile.id] = self._copy(profile)
        return self._copy(profile)

    async def delete_profile(self, user_id: str) -> bool:
        return self._profiles.pop(user_id, None) is not None
