"""
Cosine similarity between feature vectors.

Vectors of different lengths are compared by zero-padding the shorter one.
Non-finite or non-numeric components count as 0, and a zero norm yields a
similarity of 0, so scoring never raises and never returns NaN.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Dict, Optional, Sequence

import numpy as np

from notematch.features.vector import DIMENSION_GROUPS, VECTOR_DIMENSION
from notematch.settings import SimilaritySettings


class MatchTier(str, Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"
    NONE = "none"


@dataclass(frozen=True)
class GroupScore:
    value: float
    contribution: float


@dataclass(frozen=True)
class SimilarityResult:
    score: float
    tier: MatchTier
    breakdown: Dict[str, GroupScore]


def _to_array(vector: Optional[Sequence[Any]]) -> np.ndarray:
    if vector is None:
        return np.zeros(0, dtype=float)
    if isinstance(vector, np.ndarray):
        vector = vector.ravel().tolist()
    out = np.zeros(len(vector), dtype=float)
    for i, value in enumerate(vector):
        if isinstance(value, bool) or not isinstance(value, Real):
            continue
        value = float(value)
        if math.isfinite(value):
            out[i] = value
    return out


def _padded(a: Any, b: Any):
    va, vb = _to_array(a), _to_array(b)
    size = max(len(va), len(vb))
    if len(va) < size:
        va = np.pad(va, (0, size - len(va)))
    if len(vb) < size:
        vb = np.pad(vb, (0, size - len(vb)))
    return va, vb


def _cosine(va: np.ndarray, vb: np.ndarray) -> float:
    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(va, vb)) / (norm_a * norm_b)
    if not math.isfinite(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def cosine_similarity(a: Any, b: Any) -> float:
    """Cosine similarity in [-1, 1]; 0 for empty or zero-norm inputs."""
    return _cosine(*_padded(a, b))


class SimilarityEvaluator:
    """Scores, tiers and per-group breakdowns for pairs of feature vectors."""

    def __init__(self, settings: Optional[SimilaritySettings] = None):
        self.settings = settings or SimilaritySettings()

    def cosine(self, a: Any, b: Any) -> float:
        return cosine_similarity(a, b)

    def tier(self, score: float) -> MatchTier:
        if score >= self.settings.strong:
            return MatchTier.STRONG
        if score >= self.settings.medium:
            return MatchTier.MEDIUM
        if score >= self.settings.weak:
            return MatchTier.WEAK
        return MatchTier.NONE

    def breakdown(self, a: Any, b: Any) -> Dict[str, GroupScore]:
        """
        Per-group cosine and its share of the total.

        Missing indices read as 0. Contribution is the group cosine relative
        to the total cosine, weighted by the group's share of the 12
        dimensions; it is 0 whenever the total is not positive.
        """
        va, vb = _padded(a, b)
        size = max(len(va), VECTOR_DIMENSION)
        va = np.pad(va, (0, size - len(va)))
        vb = np.pad(vb, (0, size - len(vb)))
        total = _cosine(va, vb)

        result: Dict[str, GroupScore] = {}
        for name, indices in DIMENSION_GROUPS.items():
            idx = [int(i) for i in indices]
            value = _cosine(va[idx], vb[idx])
            if total > 0:
                contribution = value / total * (len(idx) / VECTOR_DIMENSION)
            else:
                contribution = 0.0
            result[name] = GroupScore(value=value, contribution=contribution)
        return result

    def evaluate(self, a: Any, b: Any) -> SimilarityResult:
        score = self.cosine(a, b)
        return SimilarityResult(
            score=score, tier=self.tier(score), breakdown=self.breakdown(a, b)
        )


__all__ = [
    "MatchTier",
    "GroupScore",
    "SimilarityResult",
    "SimilarityEvaluator",
    "cosine_similarity",
]
