"""Repository implementations."""

from prefrec.persistence.repositories.graph_repo import SQLitePreferenceGraph
from prefrec.persistence.repositories.memory_repo import (
    InMemoryPreferenceGraph,
    InMemoryUserProfileStore,
)
from prefrec.persistence.repositories.profile_repo import SQLiteUserProfileStore

__all__ = [
    "SQLitePreferenceGraph",
    "SQLiteUserProfileStore",
    # Dict-backed stores for tests and local runs
    "InMemoryPreferenceGraph",
    "InMemoryUserProfileStore",
]
