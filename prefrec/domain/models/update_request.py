"""UpdateRequest: one atomic mutation intent against a single preference.

A request names its target preference, an optional popularity change and a
set of correlation weight changes keyed by destination. Each change is an
UpdateAction whose delta is +1 or -1. Requests are transient: they are
consumed once by the graph store and, optionally, once by a ScoreBoard.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from prefrec.core.exceptions import InvalidUpdateRequestError
from prefrec.domain.models.preference import KeyLike, Preference, PreferenceKey, as_key

POPULARITY_ATTRIBUTE = "Popularity"
CORRELATIONS_ATTRIBUTE = "Correlations"


class UpdateAction(Enum):
    """Action applied to a popularity count or an edge weight."""

    INC_CORRELATION = 1
    DEC_CORRELATION = -1

    @property
    def delta(self) -> int:
        return self.value


def correlation_attribute(destination: PreferenceKey) -> str:
    """Attribute path of one correlation weight, e.g. 'Correlations.BOOKS~~Xenocide'."""
    return f"{CORRELATIONS_ATTRIBUTE}.{destination.to_storage_key()}"


class UpdateRequest:
    """A set of updates to apply to one preference."""

    def __init__(self, target: Preference):
        if target is None:
            raise InvalidUpdateRequestError("Update target preference cannot be None")
        self.target = target
        self.popularity_update: Optional[UpdateAction] = None
        self._correlation_updates: Dict[PreferenceKey, UpdateAction] = {}

    def __repr__(self) -> str:
        return (
            f"UpdateRequest(target={self.target.key}, popularity={self.popularity_delta}, "
            f"correlations={ {k.id: a.delta for k, a in self._correlation_updates.items()} })"
        )

    def update_popularity(self, action: UpdateAction) -> "UpdateRequest":
        self.popularity_update = action
        return self

    def add_correlation_update(
        self, destination: KeyLike, action: UpdateAction
    ) -> "UpdateRequest":
        self._correlation_updates[as_key(destination)] = action
        return self

    @property
    def correlation_updates(self) -> Mapping[PreferenceKey, UpdateAction]:
        return MappingProxyType(self._correlation_updates)

    @property
    def popularity_delta(self) -> int:
        return self.popularity_update.delta if self.popularity_update else 0

    def correlation_delta(self, destination: KeyLike) -> int:
        action = self._correlation_updates.get(as_key(destination))
        return action.delta if action else 0

    def has_correlation_update(self, destination: KeyLike) -> bool:
        return as_key(destination) in self._correlation_updates

    def attribute_names(self) -> List[str]:
        """Storage attribute names this request touches, in a stable order."""
        names = [correlation_attribute(k) for k in self._correlation_updates]
        names.sort()
        if self.popularity_update is not None:
            names.insert(0, POPULARITY_ATTRIBUTE)
        return names

    def is_empty(self) -> bool:
        return self.popularity_update is None and not self._correlation_updates

    def bind(self, preference: Preference) -> "UpdateRequest":
        """Copy of this request targeting the given (post-mutation) preference object.

        Raises:
            InvalidUpdateRequestError: If the preference is not the same identity
        """
        if preference is None or preference.key != self.target.key:
            raise InvalidUpdateRequestError(
                f"Cannot bind request for {self.target.key} to {preference!r}"
            )
        bound = UpdateRequest(preference)
        bound.popularity_update = self.popularity_update
        bound._correlation_updates = dict(self._correlation_updates)
        return bound
