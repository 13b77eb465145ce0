"""
Shared test fixtures.

Provides temporary SQLite databases, repository instances on both backends
and the four-book correlation scenario used across service tests.
"""

from dataclasses import dataclass
from pathlib import Path
import tempfile
from unittest.mock import patch

import aiosqlite
import pytest

from prefrec.domain.models import Preference, PreferenceCategory, UserProfile
from prefrec.persistence.database import init_database
from prefrec.persistence.repositories.graph_repo import SQLitePreferenceGraph
from prefrec.persistence.repositories.memory_repo import (
    InMemoryPreferenceGraph,
    InMemoryUserProfileStore,
)
from prefrec.persistence.repositories.profile_repo import SQLiteUserProfileStore

BOOKS = PreferenceCategory.BOOKS


@dataclass
class BookScenario:
    """Four books; the user holds Harry Potter and Ender's Game."""

    harry_potter: Preference
    enders_game: Preference
    seven_suns: Preference
    xenocide: Preference
    user: UserProfile

    @property
    def preferences(self):
        return [self.harry_potter, self.enders_game, self.seven_suns, self.xenocide]


def build_book_scenario(user_id: str = "reader-1") -> BookScenario:
    """Build the scenario, with reverse edges as the graph would hold them.

    Expected scores for the user: Xenocide 2/100 + 15/50 = 0.32,
    Seven Suns 1/100 + 5/50 = 0.11.
    """
    harry_potter = Preference("Harry Potter", BOOKS, popularity=100)
    enders_game = Preference("Ender's Game", BOOKS, popularity=50)
    seven_suns = Preference("Saga of the Seven Suns", BOOKS, popularity=15)
    xenocide = Preference("Xenocide", BOOKS, popularity=20)

    harry_potter.add_correlation(enders_game, 10)
    harry_potter.add_correlation(seven_suns, 1)
    harry_potter.add_correlation(xenocide, 2)

    enders_game.add_correlation(harry_potter, 10)
    enders_game.add_correlation(seven_suns, 5)
    enders_game.add_correlation(xenocide, 15)

    seven_suns.add_correlation(enders_game, 5)
    seven_suns.add_correlation(xenocide, 4)
    seven_suns.add_correlation(harry_potter, 1)

    xenocide.add_correlation(enders_game, 15)
    xenocide.add_correlation(seven_suns, 4)
    xenocide.add_correlation(harry_potter, 2)

    user = UserProfile(user_id, {BOOKS: [harry_potter, enders_game]})
    return BookScenario(harry_potter, enders_game, seven_suns, xenocide, user)


@pytest.fixture
def book_scenario():
    """The four-book scenario."""
    return build_book_scenario()


@pytest.fixture
async def test_db():
    """Create and initialize test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        await init_database(db_path)

        from prefrec.core import config

        original_path = config.settings.database_path
        config.settings.database_path = db_path

        with patch("prefrec.persistence.database.settings", config.settings):
            yield db_path

        config.settings.database_path = original_path


@pytest.fixture
async def db_connection(test_db):
    """Create a database connection for testing."""
    async with aiosqlite.connect(str(test_db)) as db:
        db.row_factory = aiosqlite.Row
        yield db


@pytest.fixture
async def sqlite_graph(db_connection):
    """Create SQLite graph repository with test database connection."""
    return SQLitePreferenceGraph(db_connection)


@pytest.fixture
async def sqlite_profile_store(db_connection):
    """Create SQLite profile store sharing the graph's connection."""
    return SQLiteUserProfileStore(db_connection)


@pytest.fixture
def memory_graph():
    """Empty in-memory graph."""
    return InMemoryPreferenceGraph()


@pytest.fixture
def memory_profile_store():
    """Empty in-memory profile store."""
    return InMemoryUserProfileStore()


@pytest.fixture(params=["memory", "sqlite"])
async def graph(request):
    """Each graph backend in turn, empty."""
    if request.param == "memory":
        yield InMemoryPreferenceGraph()
        return

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "graph.db"
        await init_database(db_path)
        async with aiosqlite.connect(str(db_path)) as db:
            yield SQLitePreferenceGraph(db)


@pytest.fixture
async def scenario_graph(graph, book_scenario):
    """Graph backend seeded with the four-book scenario."""
    for preference in book_scenario.preferences:
        await graph.put_preference(preference)
    return graph
