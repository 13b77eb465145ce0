"""
Preference graph administration routes.

Direct reads and full overwrites of graph preferences, for seeding and
inspection. User-driven changes go through /users.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import Response
import structlog

from prefrec.api.dependencies import GraphDep, bind_preference_context
from prefrec.api.schemas import PreferenceSchema
from prefrec.core.exceptions import PreferenceNotFoundError
from prefrec.domain.models import PreferenceCategory, PreferenceKey

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.put("", response_model=PreferenceSchema)
async def put_preference(request: PreferenceSchema, graph: GraphDep):
    """Store a preference, overwriting its popularity and all outgoing correlations."""
    stored = await graph.put_preference(request.to_domain())
    return PreferenceSchema.from_domain(stored)


@router.get(
    "/{category}/{preference_id}",
    response_model=PreferenceSchema,
    dependencies=[Depends(bind_preference_context)],
)
async def get_preference(
    category: PreferenceCategory, preference_id: str, graph: GraphDep
):
    """Get a preference with its current popularity and correlations."""
    key = PreferenceKey(preference_id, category)
    preference = await graph.get_preference(key)
    if preference is None:
        raise PreferenceNotFoundError(f"Preference {key.to_storage_key()} not found")
    return PreferenceSchema.from_domain(preference)


@router.delete(
    "/{category}/{preference_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(bind_preference_context)],
)
async def delete_preference(
    category: PreferenceCategory, preference_id: str, graph: GraphDep
):
    """Delete a preference and its outgoing correlations."""
    key = PreferenceKey(preference_id, category)
    if not await graph.delete_preference(key):
        raise PreferenceNotFoundError(f"Preference {key.to_storage_key()} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
