"""Tests for graph mutation propagation."""

import pytest

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
from prefrec.persistence.repositories.memory_repo import InMemoryPreferenceGraph
from prefrec.services.propagation_service import PropagationService
from prefrec.services.score_board import ScoreBoard

BOOKS = PreferenceCategory.BOOKS
MOVIES = PreferenceCategory.MOVIES


def _user_holding(user_id, *preferences):
    profile = UserProfile(user_id)
    for preference in preferences:
        profile.add_preference(preference)
    return profile


class TestBuildRequests:
    def test_forward_then_reverse(self, memory_graph):
        p, q1, q2 = (Preference(n, BOOKS) for n in ("P", "Q1", "Q2"))
        user = _user_holding("u1", p, q1, q2, Preference("M", MOVIES))
        service = PropagationService(memory_graph)

        forward, *reverse = service.build_requests(user, p, UpdateAction.INC_CORRELATION)

        assert forward.target.key == p.key
        assert forward.popularity_delta == 1
        assert set(forward.correlation_updates) == {q1.key, q2.key}
        assert [r.target.key for r in reverse] == [q1.key, q2.key]
        for request in reverse:
            assert dict(request.correlation_updates) == {
                p.key: UpdateAction.INC_CORRELATION
            }
            assert request.popularity_update is None

    def test_lone_preference_only_changes_popularity(self, memory_graph):
        p = Preference("P", BOOKS)
        service = PropagationService(memory_graph)

        requests = service.build_requests(
            _user_holding("u1", p), p, UpdateAction.DEC_CORRELATION
        )

        assert len(requests) == 1
        assert requests[0].popularity_delta == -1
        assert dict(requests[0].correlation_updates) == {}

    def test_graph_required(self):
        with pytest.raises(ConfigurationError):
            PropagationService(None)


class TestPropagateAdded:
    @pytest.mark.asyncio
    async def test_writes_both_directions(self, graph):
        q = Preference("Q", BOOKS, popularity=3)
        await graph.put_preference(q)
        p = Preference("P", BOOKS, popularity=0)
        user = _user_holding("u1", q, p)

        result = await PropagationService(graph).propagate_added(user, p)

        stored_p = await graph.get_preference(p.key)
        stored_q = await graph.get_preference(q.key)
        assert stored_p.popularity == 1
        assert stored_p.correlation_weight(q) == 1
        assert stored_q.popularity == 3
        assert stored_q.correlation_weight(p) == 1
        assert result.applied == [p.key, q.key]
        assert result.skipped == []

    @pytest.mark.asyncio
    async def test_missing_target_created_at_zero(self, graph):
        p = Preference("Brand New", BOOKS)
        user = _user_holding("u1", p)

        await PropagationService(graph).propagate_added(user, p)

        assert (await graph.get_preference(p.key)).popularity == 1

    @pytest.mark.asyncio
    async def test_other_categories_untouched(self, graph):
        movie = Preference("Alien", MOVIES, popularity=4)
        await graph.put_preference(movie)
        p = Preference("P", BOOKS)
        user = _user_holding("u1", movie, p)

        await PropagationService(graph).propagate_added(user, p)

        stored_movie = await graph.get_preference(movie.key)
        assert stored_movie.popularity == 4
        assert stored_movie.correlations == {}
        assert (await graph.get_preference(p.key)).correlations == {}

    @pytest.mark.asyncio
    async def test_updates_are_bound_to_post_mutation_state(self, graph, book_scenario):
        s = book_scenario
        for preference in s.preferences:
            await graph.put_preference(preference)
        user = _user_holding("u1", s.harry_potter, s.enders_game, s.seven_suns)

        result = await PropagationService(graph).propagate_added(user, s.seven_suns)

        forward = result.updates[0]
        assert forward.target.popularity == 16
        assert forward.target.correlation_weight(s.enders_game) == 6


class TestInverse:
    @pytest.mark.asyncio
    async def test_add_then_remove_restores_graph(self, scenario_graph, book_scenario):
        s = book_scenario
        before = {p.key: await scenario_graph.get_preference(p.key) for p in s.preferences}
        user = _user_holding("u1", s.harry_potter, s.enders_game, s.xenocide)
        service = PropagationService(scenario_graph)

        await service.propagate_added(user, s.xenocide)
        user.remove_preference(BOOKS, s.xenocide.id)
        await service.propagate_removed(user, s.xenocide)

        for key, original in before.items():
            after = await scenario_graph.get_preference(key)
            assert after.popularity == original.popularity
            assert after.correlations == original.correlations


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_repeated_delivery_skipped(self, graph):
        q = Preference("Q", BOOKS, popularity=3)
        await graph.put_preference(q)
        p = Preference("P", BOOKS)
        user = _user_holding("u1", q, p)
        service = PropagationService(graph)

        await service.propagate_added(user, p)
        result = await service.propagate_added(user, p)

        assert result.applied == []
        assert result.skipped == [p.key, q.key]
        assert (await graph.get_preference(p.key)).popularity == 1
        assert (await graph.get_preference(q.key)).correlation_weight(p) == 1

    @pytest.mark.asyncio
    async def test_different_users_both_apply(self, graph):
        p = Preference("P", BOOKS)
        service = PropagationService(graph)

        await service.propagate_added(_user_holding("u1", p), p)
        await service.propagate_added(_user_holding("u2", p), p)

        assert (await graph.get_preference(p.key)).popularity == 2

    @pytest.mark.asyncio
    async def test_already_applied_can_be_surfaced(self):
        graph = InMemoryPreferenceGraph()
        p = Preference("P", BOOKS)
        user = _user_holding("u1", p)
        service = PropagationService(graph, treat_already_applied_as_success=False)

        await service.propagate_added(user, p)

        with pytest.raises(MutationAlreadyAppliedError):
            await service.propagate_added(user, p)


class TestNegativePopularity:
    @pytest.mark.asyncio
    async def test_decrement_below_zero_rejected(self, graph):
        p = Preference("P", BOOKS, popularity=0)
        await graph.put_preference(p)
        request = (
            UpdateRequest(p)
            .update_popularity(UpdateAction.DEC_CORRELATION)
            .add_correlation_update(("Q", BOOKS), UpdateAction.DEC_CORRELATION)
        )

        with pytest.raises(InvalidUpdateRequestError):
            await graph.update_preference(
                request, UserProfile("u1"), UpdateAction.DEC_CORRELATION
            )

        stored = await graph.get_preference(p.key)
        assert stored.popularity == 0
        assert stored.correlations == {}

    @pytest.mark.asyncio
    async def test_decrement_on_missing_target_not_created(self, graph):
        request = UpdateRequest(Preference("Ghost", BOOKS)).update_popularity(
            UpdateAction.DEC_CORRELATION
        )

        with pytest.raises(InvalidUpdateRequestError):
            await graph.update_preference(
                request, UserProfile("u1"), UpdateAction.DEC_CORRELATION
            )

        assert await graph.get_preference(PreferenceKey("Ghost", BOOKS)) is None

    @pytest.mark.asyncio
    async def test_removal_continues_past_rejected_target(self, graph):
        """A preference reset to popularity 0 is left alone; the category stays readable."""
        from prefrec.services.recommendation_service import RecommendationService

        p = Preference("P", BOOKS, popularity=0)
        q = Preference("Q", BOOKS, popularity=3)
        q.add_correlation(p, 1)
        q.add_correlation(("R", BOOKS), 2)
        for preference in (p, q, Preference("R", BOOKS)):
            await graph.put_preference(preference)
        user = _user_holding("u1", q)

        result = await PropagationService(graph).propagate_removed(user, p)

        assert result.rejected == [p.key]
        assert result.applied == [q.key]
        assert result.forward is None
        assert (await graph.get_preference(p.key)).popularity == 0
        assert (await graph.get_preference(q.key)).correlation_weight(p) == 0

        recommendation = await RecommendationService(graph).recommend(BOOKS, user)
        assert recommendation.preference.id == "R"
        assert recommendation.score == pytest.approx(2 / 3)


class TestScoreBoardIntegration:
    @pytest.mark.asyncio
    async def test_folding_updates_matches_rescoring(self, scenario_graph, book_scenario):
        """Another user's add, folded into the board, matches a fresh scan."""
        from prefrec.services.recommendation_service import RecommendationService

        s = book_scenario
        recommender = RecommendationService(scenario_graph, batch_size=2)
        board = await recommender.build_score_board(BOOKS, s.user)

        other = _user_holding("u2", s.enders_game, s.seven_suns)
        result = await PropagationService(scenario_graph).propagate_added(other, s.seven_suns)
        board.apply_update(result.forward)

        # The user's snapshots are stale after the graph changed; rescore with current state
        refreshed = UserProfile(s.user.id)
        for held in s.user.preferences_for(BOOKS):
            refreshed.add_preference(await scenario_graph.get_preference(held.key))
        fresh = await recommender.build_score_board(BOOKS, refreshed)

        assert board.scores == pytest.approx(fresh.scores)
        assert isinstance(board, ScoreBoard)
        assert PreferenceKey("Saga of the Seven Suns", BOOKS) in board
