"""
API request/response schemas.

Pydantic models for API validation and serialization.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    Recommendation,
    UserProfile,
)
from prefrec.services.propagation_service import PropagationResult


# ============ PREFERENCE SCHEMAS ============


class CorrelationSchema(BaseModel):
    """One outgoing edge."""

    preference_id: str = Field(..., min_length=1)
    category: PreferenceCategory
    weight: int


class PreferenceSchema(BaseModel):
    """A preference with its popularity and outgoing correlations."""

    id: str = Field(..., min_length=1)
    category: PreferenceCategory
    popularity: int = Field(default=1, ge=0)
    correlations: List[CorrelationSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, preference: Preference) -> "PreferenceSchema":
        return cls(
            id=preference.id,
            category=preference.category,
            popularity=preference.popularity,
            correlations=[
                CorrelationSchema(
                    preference_id=c.destination.id,
                    category=c.destination.category,
                    weight=c.weight,
                )
                for c in sorted(
                    preference.iter_correlations(), key=lambda c: c.destination.id
                )
            ],
        )

    def to_domain(self) -> Preference:
        return Preference(
            id=self.id,
            category=self.category,
            popularity=self.popularity,
            correlations={
                PreferenceKey(c.preference_id, c.category): c.weight
                for c in self.correlations
            },
        )


# ============ USER SCHEMAS ============


class AddPreferenceRequest(BaseModel):
    """Request to add a preference to a user's profile."""

    category: PreferenceCategory
    preference_id: str = Field(..., min_length=1, max_length=500)


class UserProfileResponse(BaseModel):
    """A user and the preference snapshots they hold, by category."""

    user_id: str
    preferences: Dict[PreferenceCategory, List[PreferenceSchema]]

    @classmethod
    def from_domain(cls, profile: UserProfile) -> "UserProfileResponse":
        return cls(
            user_id=profile.id,
            preferences={
                category: [
                    PreferenceSchema.from_domain(p)
                    for p in sorted(held, key=lambda p: p.id)
                ]
                for category, held in profile.preferences.items()
                if held
            },
        )


class PropagationSchema(BaseModel):
    """Graph writes caused by one add or remove."""

    applied: int = 0
    skipped: int = 0
    rejected: int = 0

    @classmethod
    def from_result(cls, result: Optional[PropagationResult]) -> "PropagationSchema":
        """Summarize a propagation; None means nothing was propagated."""
        if result is None:
            return cls()
        return cls(
            applied=len(result.applied),
            skipped=len(result.skipped),
            rejected=len(result.rejected),
        )


class PreferenceChangeResponse(BaseModel):
    """Result of adding or removing a user's preference."""

    user_id: str
    preference: Optional[PreferenceSchema] = None
    propagation: PropagationSchema = Field(default_factory=PropagationSchema)


# ============ RECOMMENDATION SCHEMAS ============


class RecommendationSchema(BaseModel):
    """A recommended preference and its correlation score."""

    preference_id: str
    category: PreferenceCategory
    popularity: int
    score: float

    @classmethod
    def from_domain(cls, recommendation: Recommendation) -> "RecommendationSchema":
        return cls(
            preference_id=recommendation.preference.id,
            category=recommendation.preference.category,
            popularity=recommendation.preference.popularity,
            score=recommendation.score,
        )


class RecommendationResponse(BaseModel):
    """Recommendation for a user, or null when nothing is correlated."""

    user_id: str
    category: PreferenceCategory
    recommendation: Optional[RecommendationSchema] = None
