"""Dependency injection for API routes."""

from typing import Annotated

from fastapi import Depends
import aiosqlite

from prefrec.core.logging import bind_request_context
from prefrec.domain.models.preference import PreferenceCategory
from prefrec.persistence.database import get_db
from prefrec.persistence.repositories.graph_repo import SQLitePreferenceGraph
from prefrec.persistence.repositories.profile_repo import SQLiteUserProfileStore
from prefrec.services.profile_service import ProfileService
from prefrec.services.propagation_service import PropagationService
from prefrec.services.recommendation_service import RecommendationService


async def bind_user_context(user_id: str) -> None:
    """Bind the path's user_id to the request's log context."""
    bind_request_context(user_id=user_id)


async def bind_category_context(category: PreferenceCategory) -> None:
    """Bind the path's category to the request's log context."""
    bind_request_context(category=category)


async def bind_preference_context(
    category: PreferenceCategory, preference_id: str
) -> None:
    """Bind the path's category and preference_id to the request's log context."""
    bind_request_context(category=category, preference_id=preference_id)


async def get_preference_graph(
    db: aiosqlite.Connection = Depends(get_db),
) -> SQLitePreferenceGraph:
    """FastAPI dependency injection for the correlation graph.

    Uses the shared database connection from get_db dependency.
    """
    return SQLitePreferenceGraph(db)


async def get_profile_store(
    db: aiosqlite.Connection = Depends(get_db),
) -> SQLiteUserProfileStore:
    """FastAPI dependency injection for SQLiteUserProfileStore."""
    return SQLiteUserProfileStore(db)


GraphDep = Annotated[SQLitePreferenceGraph, Depends(get_preference_graph)]
ProfileStoreDep = Annotated[SQLiteUserProfileStore, Depends(get_profile_store)]


def get_profile_service(graph: GraphDep, profile_store: ProfileStoreDep) -> ProfileService:
    """FastAPI dependency injection for ProfileService.

    Graph and profile store share one connection per request, so propagation
    writes are submitted sequentially.
    """
    return ProfileService(
        profile_store=profile_store,
        graph=graph,
        propagation=PropagationService(graph),
    )


def get_recommendation_service(graph: GraphDep) -> RecommendationService:
    """FastAPI dependency injection for RecommendationService (configured batch size)."""
    return RecommendationService(graph)


# Type aliases for dependency injection
ProfileServiceDep = Annotated[ProfileService, Depends(get_profile_service)]
RecommendationServiceDep = Annotated[
    RecommendationService, Depends(get_recommendation_service)
]
