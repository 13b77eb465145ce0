"""
Custom exception hierarchy for the preference recommender.

All application exceptions inherit from PreferenceRecommenderError.
"""


class PreferenceRecommenderError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PreferenceRecommenderError):
    """Invalid or missing configuration."""

    pass


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(PreferenceRecommenderError):
    """Input validation failed."""

    pass


class InvalidUpdateRequestError(ValidationError):
    """Update request has no target, or would leave a popularity below 0."""

    pass


# =============================================================================
# Graph Errors
# =============================================================================


class GraphError(PreferenceRecommenderError):
    """Correlation graph operation error."""

    pass


class PreferenceNotFoundError(GraphError):
    """Preference does not exist in the graph."""

    pass


class GraphStorageError(GraphError):
    """Underlying store is unavailable or a scan was interrupted."""

    pass


class MutationAlreadyAppliedError(GraphError):
    """Conditional write rejected because this exact mutation was the last one applied.

    The desired state already holds, so callers propagating mutations treat
    this as success rather than failure.
    """

    def __init__(self, message: str, fingerprint: str = ""):
        super().__init__(message)
        self.fingerprint = fingerprint


# =============================================================================
# Profile Errors
# =============================================================================


class ProfileError(PreferenceRecommenderError):
    """User profile related error."""

    pass


class UserNotFoundError(ProfileError):
    """User profile does not exist."""

    pass
