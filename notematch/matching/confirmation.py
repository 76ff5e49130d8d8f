"""
Rule-confirmed match scoring.

Blends raw cosine similarity with two rule checks against the anchor: trend
label agreement and proximity of the current close to the anchor's entry
price. Each evaluation also carries human-readable reasons in a fixed order
(score, trend, price range).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from notematch.core.models import AnchorPattern, MarketObservation
from notematch.features.vector import FeatureVectorBuilder
from notematch.matching.similarity import MatchTier, SimilarityEvaluator
from notematch.settings import ConfirmationSettings


@dataclass(frozen=True)
class MatchEvaluation:
    score: float
    trend_matched: bool
    price_range_matched: bool
    reasons: Tuple[str, ...]
    similarity: float
    tier: MatchTier

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "trend_matched": self.trend_matched,
            "price_range_matched": self.price_range_matched,
            "reasons": list(self.reasons),
            "similarity": self.similarity,
            "tier": self.tier.value,
        }


def _norm_label(label: Optional[str]) -> Optional[str]:
    if label is None:
        return None
    label = label.strip().lower()
    return label or None


class RuleConfirmationLayer:
    """Composite of cosine similarity, trend agreement and price proximity."""

    def __init__(
        self,
        builder: Optional[FeatureVectorBuilder] = None,
        evaluator: Optional[SimilarityEvaluator] = None,
        settings: Optional[ConfirmationSettings] = None,
    ):
        self.builder = builder or FeatureVectorBuilder()
        self.evaluator = evaluator or SimilarityEvaluator()
        self.settings = settings or ConfirmationSettings()

    def score(self, anchor: AnchorPattern, observation: MarketObservation) -> MatchEvaluation:
        candle = observation.candle
        market_vector = self.builder.build(
            candle, observation.readings, timestamp=candle.timestamp
        )
        close = (
            observation.readings.close
            if observation.readings.close is not None
            else candle.close
        )
        return self.score_vector(anchor, market_vector, close, observation.trend)

    def score_vector(
        self,
        anchor: AnchorPattern,
        market_vector: Sequence[float],
        close: float,
        trend: Optional[str],
        anchor_vector: Optional[Sequence[float]] = None,
    ) -> MatchEvaluation:
        """
        Score ``market_vector`` against the anchor.

        ``anchor_vector`` overrides ``anchor.feature_vector`` when the caller
        already holds a converted 12-D copy.
        """
        stored = anchor.feature_vector if anchor_vector is None else anchor_vector
        similarity = self.evaluator.cosine(stored, market_vector)

        anchor_trend = _norm_label(anchor.trend)
        market_trend = _norm_label(trend)
        trend_matched = anchor_trend is not None and anchor_trend == market_trend

        entry = anchor.entry_price
        if entry > 0:
            deviation = abs(close - entry) / entry
            price_range_matched = deviation < self.settings.price_tolerance
        else:
            deviation = None
            price_range_matched = False

        s = self.settings
        composite = (
            s.similarity_weight * similarity
            + s.trend_weight * (1.0 if trend_matched else 0.0)
            + s.price_weight * (1.0 if price_range_matched else 0.0)
        )
        composite = max(0.0, min(1.0, composite))

        reasons = [f"match score: {composite * 100:.1f}%"]
        if trend_matched:
            reasons.append(f"trend matched: {market_trend}")
        else:
            reasons.append(
                f"trend mismatch: anchor={anchor_trend or 'unknown'}, "
                f"market={market_trend or 'unknown'}"
            )
        if deviation is None:
            reasons.append("price range unavailable: anchor entry price is not positive")
        elif price_range_matched:
            reasons.append(f"price within range: {deviation * 100:.2f}% from entry")
        else:
            reasons.append(f"price out of range: {deviation * 100:.2f}% from entry")

        return MatchEvaluation(
            score=composite,
            trend_matched=trend_matched,
            price_range_matched=price_range_matched,
            reasons=tuple(reasons),
            similarity=similarity,
            tier=self.evaluator.tier(similarity),
        )


__all__ = ["MatchEvaluation", "RuleConfirmationLayer"]
