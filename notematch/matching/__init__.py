"""Similarity scoring and rule-confirmed matching of market states against anchors."""

from notematch.matching.confirmation import MatchEvaluation, RuleConfirmationLayer
from notematch.matching.similarity import (
    GroupScore,
    MatchTier,
    SimilarityEvaluator,
    SimilarityResult,
    cosine_similarity,
)

__all__ = [
    "GroupScore",
    "MatchEvaluation",
    "MatchTier",
    "RuleConfirmationLayer",
    "SimilarityEvaluator",
    "SimilarityResult",
    "cosine_similarity",
]
