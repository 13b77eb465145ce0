"""
Recommendation service: batch scoring over the correlation graph.

Streams every preference of a category from the graph in bounded batches,
scores each batch against the user's held preferences and reduces the batch
winners to one recommendation.

Uses an IPreferenceGraph for storage.
"""

from typing import Dict, Optional

import structlog

from prefrec.core.config import recommender_config
from prefrec.core.exceptions import ConfigurationError
from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    Recommendation,
    UserProfile,
)
from prefrec.services.protocols import IPreferenceGraph
from prefrec.services.score_board import ScoreBoard
from prefrec.services.scoring.aggregator import score_candidates, select_best

log = structlog.get_logger(__name__)


class RecommendationService:
    """
    Service for generating recommendations.

    Each call consumes the graph's batch stream exactly once. Only one batch
    plus the running winner is held in memory by recommend().
    """

    def __init__(self, graph: IPreferenceGraph, batch_size: Optional[int] = None):
        """
        Initialize recommendation service.

        Args:
            graph: Correlation graph store
            batch_size: Preferences per batch. Defaults to
                recommendation.batch_size from the recommender config.

        Raises:
            ConfigurationError: If graph is None or batch_size < 1
        """
        if graph is None:
            raise ConfigurationError("RecommendationService requires a preference graph")
        if batch_size is None:
            batch_size = recommender_config.recommendation.batch_size
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")

        self.graph = graph
        self.batch_size = batch_size

    async def recommend(
        self, category: PreferenceCategory, user: UserProfile
    ) -> Optional[Recommendation]:
        """
        Recommend the preference most correlated with the user's held ones.

        Args:
            category: Category to recommend from
            user: User to recommend for

        Returns:
            Recommendation with a strictly positive score, or None if no
            candidate is correlated with anything the user holds

        Raises:
            GraphStorageError: If the batch scan fails; no partial result is returned
        """
        category = PreferenceCategory(category)
        held = list(user.preferences_for(category))
        log.info(
            "recommendation_started",
            user_id=user.id,
            category=category.value,
            held_count=len(held),
            batch_size=self.batch_size,
        )

        best = None
        batches = 0
        async for batch in self.graph.batch_get_preferences(category, self.batch_size):
            batches += 1
            winner = select_best(score_candidates(held, batch))
            if winner and (best is None or winner[1] > best[1]):
                best = winner

        if best is None:
            log.info(
                "no_recommendation_found",
                user_id=user.id,
                category=category.value,
                batches=batches,
            )
            return None

        preference, score = best
        log.info(
            "recommendation_selected",
            user_id=user.id,
            category=category.value,
            preference_id=preference.id,
            score=score,
            batches=batches,
        )
        return Recommendation(preference=preference, user=user, score=score)

    async def build_score_board(
        self, category: PreferenceCategory, user: UserProfile
    ) -> ScoreBoard:
        """
        Score every candidate in the category.

        The result can be kept and maintained with ScoreBoard.apply_update()
        as the graph changes.
        """
        category = PreferenceCategory(category)
        held = list(user.preferences_for(category))

        scores: Dict[Preference, float] = {}
        async for batch in self.graph.batch_get_preferences(category, self.batch_size):
            for preference, score in score_candidates(held, batch).items():
                scores.setdefault(preference, score)

        log.info(
            "score_board_built",
            user_id=user.id,
            category=category.value,
            candidates=len(scores),
        )
        return ScoreBoard(user, category, scores)

