"""
Per-user correlation scores with incremental maintenance.

A ScoreBoard maps each candidate preference in one category to its total
correlation score against the user's held preferences. Rather than rescoring
the whole category after every graph mutation, apply_update() folds a single
UpdateRequest into the existing scores.

The update works backwards from post-mutation state: the request's target must
be the live preference as it is *after* the graph applied the request, and the
previous weight and popularity are recovered by subtracting the request's
deltas. Consequences:

- Each update must be applied to a given board exactly once, in the order the
  graph applied them.
- Applying an update twice, or applying one the graph never persisted,
  silently corrupts the scores. There is no guard against either; rebuild the
  board with RecommendationService.build_score_board() when in doubt.
- For a propagated add or remove, fold PropagationResult.forward only. The
  reverse requests write mirror edges whose change the forward request
  already carries into the board.
"""

from typing import Dict, Iterable, Iterator, Optional, Tuple

import structlog

from prefrec.core.exceptions import InvalidUpdateRequestError
from prefrec.domain.models import (
    Preference,
    PreferenceCategory,
    PreferenceKey,
    UpdateRequest,
    UserProfile,
    as_key,
)
from prefrec.domain.models.preference import KeyLike, safe_ratio
from prefrec.services.scoring.aggregator import select_best

log = structlog.get_logger(__name__)


def _shifted_score(
    current: Optional[float],
    original_weight: float,
    new_weight: float,
    original_popularity: float,
    new_popularity: float,
) -> float:
    new_ratio = safe_ratio(new_weight, new_popularity)
    if current is None:
        return new_ratio
    return new_ratio - safe_ratio(original_weight, original_popularity) + current


class ScoreBoard:
    """Candidate -> aggregate correlation score for one user and category."""

    def __init__(
        self,
        user: UserProfile,
        category: PreferenceCategory,
        scores: Optional[Dict[Preference, float]] = None,
    ):
        self.user = user
        self.category = PreferenceCategory(category)
        self._scores: Dict[Preference, float] = dict(scores or {})
        # Held popularity as of the last update applied to a held target
        self._held_popularity: Dict[PreferenceKey, int] = {}

    def __repr__(self) -> str:
        return (
            f"ScoreBoard(user={self.user.id!r}, category={self.category.value}, "
            f"candidates={len(self._scores)})"
        )

    # ==================== MAPPING ====================

    def __len__(self) -> int:
        return len(self._scores)

    def __iter__(self) -> Iterator[Preference]:
        return iter(self._scores)

    def __contains__(self, item: KeyLike) -> bool:
        return self._lookup(item) in self._scores

    def __getitem__(self, item: KeyLike) -> float:
        return self._scores[self._lookup(item)]

    def get(self, item: KeyLike, default: Optional[float] = None) -> Optional[float]:
        return self._scores.get(self._lookup(item), default)

    @property
    def scores(self) -> Dict[Preference, float]:
        """Copy of the current scores."""
        return dict(self._scores)

    def top(self) -> Optional[Tuple[Preference, float]]:
        """Highest scoring candidate; ties keep the earliest entry."""
        return select_best(self._scores)

    def held_popularity(self, item: KeyLike) -> int:
        """Current popularity of a held preference as this board knows it."""
        key = as_key(item)
        if key in self._held_popularity:
            return self._held_popularity[key]
        held = self.user.get_preference(key)
        if held is None:
            raise KeyError(key)
        return held.popularity

    @staticmethod
    def _lookup(item: KeyLike) -> Preference:
        if isinstance(item, Preference):
            return item
        key = as_key(item)
        return Preference(key.id, key.category)

    # ==================== INCREMENTAL UPDATES ====================

    def apply_update(self, request: UpdateRequest) -> "ScoreBoard":
        """
        Fold one applied graph mutation into the scores.

        For each edge target -> correlated on the (post-mutation) target:

        - target held, correlated not held: the target's popularity change
          and the edge's weight change both shift the correlated candidate's
          score.
        - correlated held with a delta in this request, target not held: the
          edge's weight change shifts the target's score, normalized by the
          correlated preference's current popularity. That is the popularity
          carried by the last update this board applied to it, or the user's
          snapshot if none has been applied.

        Other edges do not affect this user's scores.

        Args:
            request: Request bound to the live, already-updated target

        Returns:
            This board, mutated

        Raises:
            InvalidUpdateRequestError: If the request has no target or category
        """
        target = request.target
        if target is None or target.category is None:
            raise InvalidUpdateRequestError("Update request has no target preference")

        held: Dict[PreferenceKey, Preference] = {
            p.key: p for p in self.user.preferences_for(target.category)
        }
        target_held = target.key in held
        if target_held:
            self._held_popularity[target.key] = target.popularity

        for destination, new_weight in target.correlations.items():
            original_weight = new_weight - request.correlation_delta(destination)

            if target_held:
                if destination in held:
                    continue
                new_popularity = target.popularity
                original_popularity = new_popularity - request.popularity_delta
                candidate = self._lookup(destination)
                self._scores[candidate] = _shifted_score(
                    self._scores.get(candidate),
                    original_weight,
                    new_weight,
                    original_popularity,
                    new_popularity,
                )

            elif destination in held and request.has_correlation_update(destination):
                popularity = self.held_popularity(destination)
                self._scores[target] = _shifted_score(
                    self._scores.get(target),
                    original_weight,
                    new_weight,
                    popularity,
                    popularity,
                )

        log.debug(
            "score_board_updated",
            user_id=self.user.id,
            target=target.key.to_storage_key(),
            target_held=target_held,
            candidates=len(self._scores),
        )
        return self

    def apply_updates(self, requests: Iterable[UpdateRequest]) -> "ScoreBoard":
        """Apply requests in order."""
        for request in requests:
            self.apply_update(request)
        return self
