"""
Profile service: user login and preference add/remove.

Each add or remove writes the user's profile first and then propagates the
change through the correlation graph.
"""

from typing import Optional, Tuple

import structlog

from prefrec.core.exceptions import UserNotFoundError
from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    UserProfile,
)
from prefrec.services.propagation_service import PropagationResult, PropagationService
from prefrec.services.protocols import IPreferenceGraph, IUserProfileStore

log = structlog.get_logger(__name__)


class ProfileService:
    """Service for user profiles and the graph updates their changes cause."""

    def __init__(
        self,
        profile_store: IUserProfileStore,
        graph: IPreferenceGraph,
        propagation: Optional[PropagationService] = None,
    ):
        self.profile_store = profile_store
        self.graph = graph
        self.propagation = propagation or PropagationService(graph)

    async def login(self, user_id: str) -> UserProfile:
        """Load a user's profile, creating an empty one on first login."""
        profile = await self.profile_store.get_profile(user_id)
        if profile is not None:
            log.info("user_logged_in", user_id=user_id)
            return profile

        profile = await self.profile_store.write_profile(UserProfile(user_id))
        log.info("user_created", user_id=user_id)
        return profile

    async def get_profile(self, user_id: str) -> UserProfile:
        """
        Get a user's profile.

        Raises:
            UserNotFoundError: If the user has never logged in
        """
        profile = await self.profile_store.get_profile(user_id)
        if profile is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return profile

    async def refresh_profile(self, user_id: str) -> UserProfile:
        """
        Profile whose held snapshots are replaced by the graph's current state.

        Held preferences missing from the graph keep their stored snapshot.
        The refreshed profile is not written back.
        """
        profile = await self.get_profile(user_id)
        refreshed = UserProfile(user_id)
        for held in profile.preferences.values():
            for snapshot in held:
                current = await self.graph.get_preference(snapshot.key)
                refreshed.add_preference(current or snapshot)
        return refreshed

    async def add_preference(
        self, user_id: str, category: PreferenceCategory, preference_id: str
    ) -> Tuple[Preference, Optional[PropagationResult]]:
        """
        Add a preference to a user's profile and propagate it.

        The snapshot stored in the profile is the graph's state before the
        add. Adding a preference already held returns its snapshot unchanged
        and no propagation result.

        Returns:
            The held snapshot and the propagation it caused

        Raises:
            UserNotFoundError: If the user has never logged in
        """
        profile = await self.get_profile(user_id)
        key = PreferenceKey(preference_id, PreferenceCategory(category))

        existing = profile.get_preference(key)
        if existing is not None:
            log.info(
                "preference_already_held",
                user_id=user_id,
                preference=key.to_storage_key(),
            )
            return existing, None

        current = await self.graph.get_preference(key)
        snapshot = profile.add_preference(current or Preference(key.id, key.category))
        await self.profile_store.write_profile(profile)

        result = await self.propagation.propagate_added(profile, snapshot)
        log.info("preference_added", user_id=user_id, preference=key.to_storage_key())
        return snapshot, result

    async def remove_preference(
        self, user_id: str, category: PreferenceCategory, preference_id: str
    ) -> Tuple[Optional[Preference], Optional[PropagationResult]]:
        """
        Remove a preference from a user's profile and propagate the removal.

        Returns:
            The removed snapshot and the propagation it caused, or
            (None, None) if the user did not hold it

        Raises:
            UserNotFoundError: If the user has never logged in
        """
        profile = await self.get_profile(user_id)
        category = PreferenceCategory(category)

        removed = profile.remove_preference(category, preference_id)
        if removed is None:
            log.info(
                "preference_not_held",
                user_id=user_id,
                category=category.value,
                preference_id=preference_id,
            )
            return None, None

        await self.profile_store.write_profile(profile)
        # Correlations must still reach the remaining held preferences
        result = await self.propagation.propagate_removed(profile, removed)
        log.info(
            "preference_removed",
            user_id=user_id,
            preference=removed.key.to_storage_key(),
        )
        return removed, result
