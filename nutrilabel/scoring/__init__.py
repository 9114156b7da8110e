"""Scoring module for ranking ingredient database candidates."""

from .candidate_scorer import CandidateScorer, IngredientDomain, FLOUR_DOMAIN, score_candidate

__all__ = [
    "CandidateScorer",
    "IngredientDomain",
    "FLOUR_DOMAIN",
    "score_candidate",
]
