"""UserProfile domain model.

A profile holds point-in-time snapshots of the preferences a user has
added, grouped by category. Snapshots are copies: mutations applied to the
correlation graph afterwards are not reflected here, and callers needing
current popularity or correlations must re-fetch from the graph.
"""

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from prefrec.core.exceptions import ValidationError
from prefrec.domain.models.preference import (
    KeyLike,
    Preference,
    PreferenceCategory,
    PreferenceKey,
    as_key,
)


class UserProfile:
    """A user and the preference snapshots they hold."""

    def __init__(
        self,
        user_id: str,
        preferences: Optional[Mapping[PreferenceCategory, Iterable[Preference]]] = None,
    ):
        if not user_id:
            raise ValidationError("User ID cannot be empty")
        self.id = user_id
        self._preferences: Dict[PreferenceCategory, Dict[PreferenceKey, Preference]] = {}
        if preferences:
            for category, category_preferences in preferences.items():
                if category_preferences is None:
                    raise ValidationError(
                        f"Preference set for category {category} cannot be None"
                    )
                for preference in category_preferences:
                    self.add_preference(preference)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UserProfile):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        counts = {c.value: len(p) for c, p in self._preferences.items() if p}
        return f"UserProfile(id={self.id!r}, preferences={counts})"

    @property
    def preferences(self) -> Dict[PreferenceCategory, FrozenSet[Preference]]:
        """All held snapshots by category (read-only copy)."""
        return {
            category: frozenset(held.values())
            for category, held in self._preferences.items()
        }

    def add_preference(self, preference: Preference) -> Preference:
        """Store a snapshot copy of the preference and return the copy.

        Re-adding a held preference replaces its snapshot.
        """
        if preference is None:
            raise ValidationError("Preference cannot be None")
        snapshot = preference.copy()
        self._preferences.setdefault(snapshot.category, {})[snapshot.key] = snapshot
        return snapshot

    def add_preference_by_id(
        self, category: PreferenceCategory, preference_id: str
    ) -> Preference:
        return self.add_preference(Preference(preference_id, category))

    def remove_preference(
        self, category: PreferenceCategory, preference_id: str
    ) -> Optional[Preference]:
        """Remove a held preference.

        Returns:
            The removed snapshot, or None if the user did not hold it
        """
        key = as_key((preference_id, category))
        held = self._preferences.get(key.category)
        if not held:
            return None
        return held.pop(key, None)

    def preferences_for(self, category: PreferenceCategory) -> FrozenSet[Preference]:
        """Snapshots held in the category (empty when none)."""
        held = self._preferences.get(PreferenceCategory(category))
        return frozenset(held.values()) if held else frozenset()

    def get_preference(self, key: KeyLike) -> Optional[Preference]:
        key = as_key(key)
        return self._preferences.get(key.category, {}).get(key)

    def holds(self, key: KeyLike) -> bool:
        return self.get_preference(key) is not None
