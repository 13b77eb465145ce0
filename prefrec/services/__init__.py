# noqa
from prefrec.services.profile_service import ProfileService
from prefrec.services.propagation_service import PropagationResult, PropagationService
from prefrec.services.recommendation_service import RecommendationService
from prefrec.services.score_board import ScoreBoard

__all__ = [
    "ProfileService",
    "PropagationResult",
    "PropagationService",
    "RecommendationService",
    "ScoreBoard",
]
