"""Correlation score aggregation for one batch of candidate preferences.

A candidate's score is the sum, over every preference the user holds, of the
held preference's normalized correlation ratio toward the candidate:

    score(c) = sum(weight(h -> c) / popularity(h) for h in held)

Scores depend only on the held set and the candidate's identity, so batches
can be scored independently and in any order.
"""

from typing import Dict, Iterable, Optional, Tuple

from prefrec.domain.models import Preference


def score_candidates(
    held_preferences: Iterable[Preference],
    candidate_batch: Iterable[Preference],
) -> Dict[Preference, float]:
    """
    Score a batch of candidates against the held preferences.

    Candidates the user already holds are excluded, as are candidates whose
    total is not strictly positive. The result follows candidate order.

    Args:
        held_preferences: Preferences the user holds, with their correlations
        candidate_batch: Candidates to score

    Returns:
        Candidate -> total correlation score
    """
    held = list(held_preferences)
    held_keys = {h.key for h in held}

    scores: Dict[Preference, float] = {}
    for candidate in candidate_batch:
        if candidate.key in held_keys or candidate in scores:
            continue
        score = sum(h.correlation_ratio(candidate.key) for h in held)
        if score > 0:
            scores[candidate] = score
    return scores


def select_best(
    scores: Dict[Preference, float],
    current: Optional[Tuple[Preference, float]] = None,
) -> Optional[Tuple[Preference, float]]:
    """
    Fold scores into a running best (preference, score) pair.

    A later entry replaces the best only with a strictly greater score, so
    ties keep the earliest entry seen.
    """
    best = current
    for preference, score in scores.items():
        if best is None or score > best[1]:
            best = (preference, score)
    return best
