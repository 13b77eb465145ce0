"""
User API routes.

Endpoints for login, preference add/remove and recommendations.
"""

from fastapi import APIRouter, Depends, status
import structlog

from prefrec.api.dependencies import (
    ProfileServiceDep,
    RecommendationServiceDep,
    bind_category_context,
    bind_preference_context,
    bind_user_context,
)
from prefrec.api.schemas import (
    AddPreferenceRequest,
    PreferenceChangeResponse,
    PreferenceSchema,
    PropagationSchema,
    RecommendationResponse,
    RecommendationSchema,
    UserProfileResponse,
)
from prefrec.domain.models import PreferenceCategory

log = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/users", tags=["users"], dependencies=[Depends(bind_user_context)]
)


# ============ PROFILES ============


@router.put("/{user_id}", response_model=UserProfileResponse)
async def login(user_id: str, profile_service: ProfileServiceDep):
    """Log a user in, creating an empty profile on first use."""
    profile = await profile_service.login(user_id)
    return UserProfileResponse.from_domain(profile)


@router.get("/{user_id}", response_model=UserProfileResponse)
async def get_user(user_id: str, profile_service: ProfileServiceDep):
    """Get a user's profile with their held preference snapshots."""
    profile = await profile_service.get_profile(user_id)
    return UserProfileResponse.from_domain(profile)


# ============ PREFERENCES ============


@router.post(
    "/{user_id}/preferences",
    response_model=PreferenceChangeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_preference(
    user_id: str,
    request: AddPreferenceRequest,
    profile_service: ProfileServiceDep,
):
    """Add a preference to the user's profile and update the correlation graph.

    Adding a preference the user already holds changes nothing.
    """
    snapshot, result = await profile_service.add_preference(
        user_id, request.category, request.preference_id
    )
    return PreferenceChangeResponse(
        user_id=user_id,
        preference=PreferenceSchema.from_domain(snapshot),
        propagation=PropagationSchema.from_result(result),
    )


@router.delete(
    "/{user_id}/preferences/{category}/{preference_id}",
    response_model=PreferenceChangeResponse,
    dependencies=[Depends(bind_preference_context)],
)
async def remove_preference(
    user_id: str,
    category: PreferenceCategory,
    preference_id: str,
    profile_service: ProfileServiceDep,
):
    """Remove a preference from the user's profile and update the correlation graph.

    preference is null when the user did not hold it.
    """
    removed, result = await profile_service.remove_preference(
        user_id, category, preference_id
    )
    return PreferenceChangeResponse(
        user_id=user_id,
        preference=PreferenceSchema.from_domain(removed) if removed else None,
        propagation=PropagationSchema.from_result(result),
    )


# ============ RECOMMENDATIONS ============


@router.get(
    "/{user_id}/recommendations/{category}",
    response_model=RecommendationResponse,
    dependencies=[Depends(bind_category_context)],
)
async def get_recommendation(
    user_id: str,
    category: PreferenceCategory,
    profile_service: ProfileServiceDep,
    recommendation_service: RecommendationServiceDep,
):
    """Recommend the preference most correlated with what the user holds.

    Scores against the graph's current state of the held preferences.
    """
    profile = await profile_service.refresh_profile(user_id)
    recommendation = await recommendation_service.recommend(category, profile)
    return RecommendationResponse(
        user_id=user_id,
        category=category,
        recommendation=(
            RecommendationSchema.from_domain(recommendation) if recommendation else None
        ),
    )
