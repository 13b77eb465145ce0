"""Domain models package."""

from .preference import (
    Correlation,
    Preference,
    PreferenceCategory,
    PreferenceKey,
    as_key,
)
from .user_profile import UserProfile
from .update_request import UpdateAction, UpdateRequest
from .recommendation import Recommendation

__all__ = [
    "Correlation",
    "Preference",
    "PreferenceCategory",
    "PreferenceKey",
    "as_key",
    "UserProfile",
    "UpdateAction",
    "UpdateRequest",
    "Recommendation",
]
