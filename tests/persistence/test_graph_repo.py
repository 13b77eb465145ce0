"""Tests for SQLitePreferenceGraph."""

import pytest

from prefrec.core.exceptions import (
    ConfigurationError,
    GraphStorageError,
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

BOOKS = PreferenceCategory.BOOKS
MOVIES = PreferenceCategory.MOVIES
INC = UpdateAction.INC_CORRELATION
DEC = UpdateAction.DEC_CORRELATION


@pytest.fixture
def user():
    return UserProfile("reader-1")


class TestPutAndGet:
    @pytest.mark.asyncio
    async def test_round_trip_with_correlations(self, sqlite_graph):
        dune = Preference("Dune", BOOKS, popularity=12)
        dune.add_correlation(("Emma", BOOKS), 3)
        dune.add_correlation(("Hyperion", BOOKS), 0)

        await sqlite_graph.put_preference(dune)
        stored = await sqlite_graph.get_preference(dune.key)

        assert stored == dune
        assert stored.popularity == 12
        assert stored.correlations == {
            PreferenceKey("Emma", BOOKS): 3,
            PreferenceKey("Hyperion", BOOKS): 0,
        }

    @pytest.mark.asyncio
    async def test_missing_returns_none(self, sqlite_graph):
        assert await sqlite_graph.get_preference(PreferenceKey("Nope", BOOKS)) is None

    @pytest.mark.asyncio
    async def test_put_replaces_edge_set(self, sqlite_graph):
        dune = Preference("Dune", BOOKS)
        dune.add_correlation(("Emma", BOOKS), 3)
        await sqlite_graph.put_preference(dune)

        replacement = Preference("Dune", BOOKS, popularity=4)
        replacement.add_correlation(("Hyperion", BOOKS), 1)
        await sqlite_graph.put_preference(replacement)

        stored = await sqlite_graph.get_preference(dune.key)
        assert stored.popularity == 4
        assert stored.correlations == {PreferenceKey("Hyperion", BOOKS): 1}

    @pytest.mark.asyncio
    async def test_same_id_in_two_categories_is_distinct(self, sqlite_graph):
        await sqlite_graph.put_preference(Preference("Dune", BOOKS, popularity=2))
        await sqlite_graph.put_preference(Preference("Dune", MOVIES, popularity=9))

        assert (await sqlite_graph.get_preference(PreferenceKey("Dune", BOOKS))).popularity == 2
        assert (await sqlite_graph.get_preference(PreferenceKey("Dune", MOVIES))).popularity == 9

    @pytest.mark.asyncio
    async def test_delete(self, sqlite_graph):
        dune = Preference("Dune", BOOKS)
        dune.add_correlation(("Emma", BOOKS), 1)
        await sqlite_graph.put_preference(dune)

        assert await sqlite_graph.delete_preference(dune.key) is True
        assert await sqlite_graph.get_preference(dune.key) is None
        assert await sqlite_graph.delete_preference(dune.key) is False


class TestBatchGet:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [1, 2, 3, 5, 10])
    async def test_every_preference_read_once(self, sqlite_graph, batch_size):
        ids = ["a", "b", "c", "d", "e"]
        for preference_id in reversed(ids):
            await sqlite_graph.put_preference(Preference(preference_id, BOOKS))
        await sqlite_graph.put_preference(Preference("m", MOVIES))

        batches = [
            batch async for batch in sqlite_graph.batch_get_preferences(BOOKS, batch_size)
        ]

        assert [p.id for batch in batches for p in batch] == ids
        assert all(0 < len(batch) <= batch_size for batch in batches)

    @pytest.mark.asyncio
    async def test_batches_carry_correlations(self, sqlite_graph, book_scenario):
        for preference in book_scenario.preferences:
            await sqlite_graph.put_preference(preference)

        seen = {}
        async for batch in sqlite_graph.batch_get_preferences(BOOKS, 3):
            for preference in batch:
                seen[preference.key] = preference

        for original in book_scenario.preferences:
            assert seen[original.key].correlations == original.correlations

    @pytest.mark.asyncio
    async def test_empty_category_yields_nothing(self, sqlite_graph):
        batches = [b async for b in sqlite_graph.batch_get_preferences(MOVIES, 10)]

        assert batches == []

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self, sqlite_graph):
        with pytest.raises(ConfigurationError):
            async for _ in sqlite_graph.batch_get_preferences(BOOKS, 0):
                pass

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self, sqlite_graph):
        await sqlite_graph.put_preference(Preference("Dune", BOOKS))
        await sqlite_graph.db.execute("DROP TABLE correlations")

        with pytest.raises(GraphStorageError):
            async for _ in sqlite_graph.batch_get_preferences(BOOKS, 10):
                pass


class TestUpdatePreference:
    @pytest.mark.asyncio
    async def test_applies_deltas(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=5)
        dune.add_correlation(("Emma", BOOKS), 2)
        await sqlite_graph.put_preference(dune)
        request = (
            UpdateRequest(dune)
            .update_popularity(INC)
            .add_correlation_update(("Emma", BOOKS), INC)
            .add_correlation_update(("Hyperion", BOOKS), INC)
        )

        updated = await sqlite_graph.update_preference(request, user, INC)

        assert updated.popularity == 6
        assert updated.correlation_weight(("Emma", BOOKS)) == 3
        assert updated.correlation_weight(("Hyperion", BOOKS)) == 1

    @pytest.mark.asyncio
    async def test_missing_target_created_at_zero(self, sqlite_graph, user):
        request = UpdateRequest(Preference("Dune", BOOKS)).add_correlation_update(
            ("Emma", BOOKS), INC
        )

        updated = await sqlite_graph.update_preference(request, user, INC)

        assert updated.popularity == 0
        assert updated.correlation_weight(("Emma", BOOKS)) == 1

    @pytest.mark.asyncio
    async def test_zero_weight_edge_kept(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=2)
        dune.add_correlation(("Emma", BOOKS), 1)
        await sqlite_graph.put_preference(dune)
        request = UpdateRequest(dune).add_correlation_update(("Emma", BOOKS), DEC)

        updated = await sqlite_graph.update_preference(request, user, DEC)

        assert PreferenceKey("Emma", BOOKS) in updated.correlations
        assert updated.correlation_weight(("Emma", BOOKS)) == 0

    @pytest.mark.asyncio
    async def test_repeated_update_rejected(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=2)
        await sqlite_graph.put_preference(dune)
        request = UpdateRequest(dune).update_popularity(INC)

        await sqlite_graph.update_preference(request, user, INC)
        with pytest.raises(MutationAlreadyAppliedError) as exc_info:
            await sqlite_graph.update_preference(request, user, INC)

        assert exc_info.value.fingerprint.startswith("reader-1~~")
        assert (await sqlite_graph.get_preference(dune.key)).popularity == 3

    @pytest.mark.asyncio
    async def test_rejected_update_leaves_connection_usable(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=2)
        await sqlite_graph.put_preference(dune)
        request = UpdateRequest(dune).update_popularity(INC)
        await sqlite_graph.update_preference(request, user, INC)
        with pytest.raises(MutationAlreadyAppliedError):
            await sqlite_graph.update_preference(request, user, INC)

        other = await sqlite_graph.update_preference(request, UserProfile("reader-2"), INC)

        assert other.popularity == 4

    @pytest.mark.asyncio
    async def test_negative_popularity_rolled_back(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=0)
        await sqlite_graph.put_preference(dune)
        request = UpdateRequest(dune).update_popularity(DEC)

        with pytest.raises(InvalidUpdateRequestError):
            await sqlite_graph.update_preference(request, user, DEC)

        cursor = await sqlite_graph.db.execute(
            "SELECT popularity, last_modified_by FROM preferences WHERE preference_key = ?",
            (dune.key.to_storage_key(),),
        )
        row = await cursor.fetchone()
        assert row["popularity"] == 0
        assert row["last_modified_by"] is None
        updated = await sqlite_graph.update_preference(
            UpdateRequest(dune).update_popularity(INC), user, INC
        )
        assert updated.popularity == 1

    @pytest.mark.asyncio
    async def test_different_action_applies(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=2)
        await sqlite_graph.put_preference(dune)

        await sqlite_graph.update_preference(UpdateRequest(dune).update_popularity(INC), user, INC)
        updated = await sqlite_graph.update_preference(
            UpdateRequest(dune).update_popularity(DEC), user, DEC
        )

        assert updated.popularity == 2

    @pytest.mark.asyncio
    async def test_put_clears_fingerprint(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=2)
        await sqlite_graph.put_preference(dune)
        request = UpdateRequest(dune).update_popularity(INC)
        await sqlite_graph.update_preference(request, user, INC)

        await sqlite_graph.put_preference(dune)
        updated = await sqlite_graph.update_preference(request, user, INC)

        assert updated.popularity == 3

    @pytest.mark.asyncio
    async def test_failed_update_rolled_back(self, sqlite_graph, user):
        dune = Preference("Dune", BOOKS, popularity=2)
        await sqlite_graph.put_preference(dune)
        await sqlite_graph.db.execute("DROP TABLE correlations")
        await sqlite_graph.db.commit()
        request = (
            UpdateRequest(dune)
            .update_popularity(INC)
            .add_correlation_update(("Emma", BOOKS), INC)
        )

        with pytest.raises(GraphStorageError):
            await sqlite_graph.update_preference(request, user, INC)

        cursor = await sqlite_graph.db.execute(
            "SELECT popularity, last_modified_by FROM preferences WHERE preference_key = ?",
            (dune.key.to_storage_key(),),
        )
        row = await cursor.fetchone()
        assert row["popularity"] == 2
        assert row["last_modified_by"] is None
