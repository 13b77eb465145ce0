"""Correlation scoring for recommendations."""

from prefrec.services.scoring.aggregator import score_candidates, select_best

__all__ = ["score_candidates", "select_best"]
