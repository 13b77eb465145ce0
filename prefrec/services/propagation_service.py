"""
Graph mutation propagation for preference adds and removes.

When a user adds (or removes) preference P in a category, the graph is kept
consistent in two passes:

1. Forward: one request on P changing its popularity by the delta and the
   edge P -> Q by the same delta, for every other Q the user holds in P's
   category.
2. Reverse: one request per such Q changing only the edge Q -> P.

Edges are directed records, so both directions are written explicitly.
Requests are submitted one at a time through the graph's conditional write;
a request the graph reports as already applied counts as done, and one it
rejects for driving a popularity below 0 is recorded without stopping the
rest.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from prefrec.core.config import recommender_config
from prefrec.core.exceptions import (
    ConfigurationError,
    InvalidUpdateRequestError,
    MutationAlreadyAppliedError,
)
from prefrec.domain.models import (
    Preference,
    PreferenceKey,
    UpdateAction,
    UpdateRequest,
    UserProfile,
)
from prefrec.services.protocols import IPreferenceGraph

log = structlog.get_logger(__name__)


@dataclass
class PropagationResult:
    """Outcome of one propagation: which targets were written, skipped or rejected.

    rejected holds targets the graph refused because the update would drive
    their popularity below 0. Nothing was written to them.

    updates holds every applied request bound to its post-mutation target.
    forward is the applied forward request, if any. Folding forward alone
    into a ScoreBoard accounts for the whole propagation: a reverse request
    mirrors an edge change the forward request already reflects, so folding
    both double counts it.
    """

    preference: PreferenceKey
    action: UpdateAction
    applied: List[PreferenceKey] = field(default_factory=list)
    skipped: List[PreferenceKey] = field(default_factory=list)
    rejected: List[PreferenceKey] = field(default_factory=list)
    updates: List[UpdateRequest] = field(default_factory=list)
    forward: Optional[UpdateRequest] = None


class PropagationService:
    """Turns a user's preference add/remove into correlation graph updates."""

    def __init__(
        self,
        graph: IPreferenceGraph,
        treat_already_applied_as_success: Optional[bool] = None,
    ):
        """
        Initialize propagation service.

        Args:
            graph: Correlation graph store
            treat_already_applied_as_success: Swallow MutationAlreadyAppliedError
                (default from propagation config). When False it propagates.

        Raises:
            ConfigurationError: If graph is None
        """
        if graph is None:
            raise ConfigurationError("PropagationService requires a preference graph")
        if treat_already_applied_as_success is None:
            treat_already_applied_as_success = (
                recommender_config.propagation.treat_already_applied_as_success
            )
        self.graph = graph
        self.treat_already_applied_as_success = treat_already_applied_as_success

    async def propagate_added(
        self, user: UserProfile, preference: Preference
    ) -> PropagationResult:
        """Strengthen the graph for a preference the user just added."""
        return await self._propagate(user, preference, UpdateAction.INC_CORRELATION)

    async def propagate_removed(
        self, user: UserProfile, preference: Preference
    ) -> PropagationResult:
        """Weaken the graph for a preference the user just removed."""
        return await self._propagate(user, preference, UpdateAction.DEC_CORRELATION)

    def build_requests(
        self, user: UserProfile, preference: Preference, action: UpdateAction
    ) -> List[UpdateRequest]:
        """
        Build the forward request followed by one reverse request per co-held preference.

        Only preferences the user holds in the same category are correlated;
        the preference itself is never one of them.
        """
        others = sorted(
            (q for q in user.preferences_for(preference.category) if q.key != preference.key),
            key=lambda q: q.id,
        )

        forward = UpdateRequest(preference).update_popularity(action)
        for other in others:
            forward.add_correlation_update(other, action)

        reverse = [
            UpdateRequest(other).add_correlation_update(preference, action)
            for other in others
        ]
        return [forward, *reverse]

    async def _propagate(
        self, user: UserProfile, preference: Preference, action: UpdateAction
    ) -> PropagationResult:
        requests = self.build_requests(user, preference, action)
        result = PropagationResult(preference=preference.key, action=action)

        for request in requests:
            target = request.target.key
            try:
                updated = await self.graph.update_preference(request, user, action)
            except MutationAlreadyAppliedError as e:
                if not self.treat_already_applied_as_success:
                    raise
                log.info(
                    "update_already_applied",
                    user_id=user.id,
                    target=target.to_storage_key(),
                    fingerprint=e.fingerprint,
                )
                result.skipped.append(target)
                continue
            except InvalidUpdateRequestError as e:
                log.warning(
                    "update_rejected",
                    user_id=user.id,
                    target=target.to_storage_key(),
                    error=e.message,
                )
                result.rejected.append(target)
                continue

            bound = request.bind(updated)
            if request is requests[0]:
                result.forward = bound
            result.applied.append(target)
            result.updates.append(bound)

        log.info(
            "preference_change_propagated",
            user_id=user.id,
            preference=preference.key.to_storage_key(),
            delta=action.delta,
            applied=len(result.applied),
            skipped=len(result.skipped),
            rejected=len(result.rejected),
        )
        return result
