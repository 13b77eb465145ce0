"""Domain models for preferences and their outgoing correlation edges.

A Preference is identified solely by (id, category). Popularity and
correlations are mutable attributes and take no part in equality or hashing,
so a Preference can be used as a dictionary key while its counts change.

Correlations are stored as an explicit map from destination identity to
weight: writing an edge to an existing destination overwrites it.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, NamedTuple, Optional, Union

from prefrec.core.exceptions import ValidationError

STORAGE_KEY_SEPARATOR = "~~"


class PreferenceCategory(str, Enum):
    """Categories a preference can belong to. Correlations never cross categories."""

    RESTAURANTS = "RESTAURANTS"
    BOOKS = "BOOKS"
    TELEVISION = "TELEVISION"
    MOVIES = "MOVIES"


class PreferenceKey(NamedTuple):
    """Identity of a preference."""

    id: str
    category: PreferenceCategory

    def to_storage_key(self) -> str:
        """Render as '<CATEGORY>~~<id>', the key used by the stores."""
        return f"{self.category.value}{STORAGE_KEY_SEPARATOR}{self.id}"

    @classmethod
    def from_storage_key(cls, storage_key: str) -> "PreferenceKey":
        """Parse a '<CATEGORY>~~<id>' key."""
        category, sep, preference_id = storage_key.partition(STORAGE_KEY_SEPARATOR)
        if not sep or not preference_id:
            raise ValidationError(f"Malformed preference storage key: {storage_key!r}")
        return cls(preference_id, PreferenceCategory(category))


KeyLike = Union["Preference", PreferenceKey, tuple]


def as_key(value: KeyLike) -> PreferenceKey:
    """Normalize a Preference, PreferenceKey or (id, category) tuple to a PreferenceKey."""
    if isinstance(value, Preference):
        return value.key
    if isinstance(value, PreferenceKey) and isinstance(value.category, PreferenceCategory):
        return value
    preference_id, category = value
    return PreferenceKey(preference_id, PreferenceCategory(category))


def safe_ratio(weight: float, popularity: float) -> float:
    """weight / popularity, or 0.0 when popularity is 0."""
    return 0.0 if popularity == 0 else weight / popularity


@dataclass(frozen=True, eq=False)
class Correlation:
    """Read-only view of one directed, weighted edge.

    Equality and hashing consider only the destination, so a set of
    correlations holds one edge per destination.
    """

    destination: PreferenceKey
    weight: int

    def ratio(self, source_popularity: int) -> float:
        """weight / source_popularity, or 0.0 when the popularity is 0."""
        return safe_ratio(self.weight, source_popularity)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Correlation):
            return NotImplemented
        return self.destination == other.destination

    def __hash__(self) -> int:
        return hash(self.destination)


@dataclass(eq=False)
class Preference:
    """A recommendable item with a popularity count and outgoing correlations."""

    id: str
    category: PreferenceCategory
    popularity: int = 1
    correlations: Dict[PreferenceKey, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("Preference ID cannot be empty")
        if self.category is None:
            raise ValidationError("Preference category cannot be None")
        self.category = PreferenceCategory(self.category)
        if self.popularity is None or self.popularity < 0:
            raise ValidationError("Popularity cannot be less than 0")
        self.correlations = {
            as_key(destination): int(weight)
            for destination, weight in self.correlations.items()
        }

    @property
    def key(self) -> PreferenceKey:
        return PreferenceKey(self.id, self.category)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Preference):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return (
            f"Preference(id={self.id!r}, category={self.category.value}, "
            f"popularity={self.popularity}, correlations={len(self.correlations)})"
        )

    # ==================== POPULARITY ====================

    def adjust_popularity(self, delta: int) -> None:
        self.popularity += delta

    # ==================== CORRELATIONS ====================

    def add_correlation(self, destination: KeyLike, weight: int = 1) -> None:
        """Write the edge to destination, overwriting any existing edge."""
        key = as_key(destination)
        if key == self.key:
            raise ValidationError("A preference cannot be correlated with itself")
        self.correlations[key] = weight

    def adjust_correlation(self, destination: KeyLike, delta: int) -> int:
        """Apply a signed delta to an edge, creating it at weight 0 if absent.

        Returns:
            The new weight
        """
        key = as_key(destination)
        self.correlations[key] = self.correlations.get(key, 0) + delta
        return self.correlations[key]

    def remove_correlation(self, destination: KeyLike) -> Optional[int]:
        return self.correlations.pop(as_key(destination), None)

    def correlation_weight(self, destination: KeyLike) -> Optional[int]:
        return self.correlations.get(as_key(destination))

    def correlation_ratio(self, destination: KeyLike) -> float:
        """Normalized strength of the edge to destination.

        Returns 0.0 if there is no such edge or this preference has popularity 0.
        """
        weight = self.correlation_weight(destination)
        if weight is None:
            return 0.0
        return safe_ratio(weight, self.popularity)

    def iter_correlations(self) -> Iterator[Correlation]:
        for destination, weight in self.correlations.items():
            yield Correlation(destination, weight)

    def copy(self) -> "Preference":
        """Independent snapshot of this preference, correlations included."""
        return Preference(
            id=self.id,
            category=self.category,
            popularity=self.popularity,
            correlations=dict(self.correlations),
        )
