"""
Service protocol definitions (interfaces).

Defines the storage collaborators the recommendation, propagation and
profile services depend on, using Python's typing.Protocol. Both the
SQLite repositories and the in-memory stores satisfy these structurally.
"""

from typing import AsyncIterator, List, Optional, Protocol

from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    UpdateAction,
    UpdateRequest,
    UserProfile,
)


class IPreferenceGraph(Protocol):
    """
    Protocol for the preference correlation graph store.

    Holds every preference with its popularity and outgoing correlations.
    Reads return independent copies; mutating them does not affect the store.
    """

    async def get_preference(self, key: PreferenceKey) -> Optional[Preference]:
        """
        Fetch one preference with its current popularity and correlations.

        Args:
            key: Preference identity

        Returns:
            The preference, or None if it does not exist

        Raises:
            GraphStorageError: If the store is unavailable
        """
        ...

    async def put_preference(self, preference: Preference) -> Preference:
        """
        Write a preference, fully overwriting any existing one.

        Args:
            preference: Preference to store

        Returns:
            The stored preference
        """
        ...

    async def delete_preference(self, key: PreferenceKey) -> bool:
        """
        Delete a preference and its outgoing correlations.

        Returns:
            True if it existed
        """
        ...

    def batch_get_preferences(
        self, category: PreferenceCategory, batch_size: int
    ) -> AsyncIterator[List[Preference]]:
        """
        Stream every preference of a category in batches.

        Each batch holds at most batch_size preferences, order within and
        across batches is stable for a given store state, and every
        preference of the category appears exactly once.

        Args:
            category: Category to scan
            batch_size: Maximum preferences per batch (>= 1)

        Yields:
            Lists of preferences

        Raises:
            GraphStorageError: If the scan fails part way
        """
        ...

    async def update_preference(
        self,
        request: UpdateRequest,
        user: UserProfile,
        action: UpdateAction,
    ) -> Preference:
        """
        Atomically apply an update request to its target preference.

        The popularity delta and every correlation delta are applied together
        or not at all. A missing target is created at popularity 0 and a
        missing edge at weight 0 before the deltas apply. The write is
        conditional on the target not already carrying this mutation's
        idempotency fingerprint.

        Args:
            request: Update to apply
            user: User whose action caused it
            action: Increment or decrement

        Returns:
            The target preference after the mutation

        Raises:
            MutationAlreadyAppliedError: If this mutation was the last one applied
            InvalidUpdateRequestError: If the popularity would drop below 0;
                nothing is written
            GraphStorageError: If the store is unavailable
        """
        ...


class IUserProfileStore(Protocol):
    """
    Protocol for user profile persistence.

    Profiles hold preference snapshots, stored exactly as given.
    """

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """
        Load a user profile.

        Returns:
            The profile, or None if the user is unknown
        """
        ...

    async def write_profile(self, profile: UserProfile) -> UserProfile:
        """
        Persist a profile, replacing its stored snapshots.

        Returns:
            The stored profile
        """
        ...

    async def delete_profile(self, user_id: str) -> bool:
        """
        Delete a user profile.

        Returns:
            True if it existed
        """
        ...
