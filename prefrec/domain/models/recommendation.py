"""Recommendation domain model."""

from dataclasses import dataclass

from prefrec.domain.models.preference import Preference
from prefrec.domain.models.user_profile import UserProfile


@dataclass(frozen=True)
class Recommendation:
    """The preference most correlated with a user's held preferences.

    score is the total correlation strength; strictly positive when produced
    by batch scoring.
    """

    preference: Preference
    user: UserProfile
    score: float
