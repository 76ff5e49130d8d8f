"""
Feature vector construction.

Encodes a candle and its indicator readings into the fixed 12-dimension
layout shared by anchors, live matching and the backtester. Every dimension
is finite and sits in [0, 1] except trend direction and MACD momentum, which
sit in [-1, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from numbers import Real
from typing import Any, Dict, Optional, Tuple

import numpy as np

from notematch.core.models import Candle, IndicatorReadings
from notematch.core.timeutils import utc_hour
from notematch.settings import FeatureSettings

FeatureVector = Tuple[float, ...]

VECTOR_DIMENSION = 12


class Dimension(IntEnum):
    TREND_DIRECTION = 0
    TREND_STRENGTH = 1
    TREND_ALIGNMENT = 2
    MACD_MOMENTUM = 3
    MACD_CROSSOVER = 4
    RSI_LEVEL = 5
    RSI_ZONE = 6
    BB_POSITION = 7
    BB_WIDTH = 8
    CANDLE_BODY = 9
    CANDLE_DIRECTION = 10
    SESSION = 11


DIMENSION_GROUPS: Dict[str, Tuple[int, ...]] = {
    "trend": (
        Dimension.TREND_DIRECTION,
        Dimension.TREND_STRENGTH,
        Dimension.TREND_ALIGNMENT,
    ),
    "momentum": (Dimension.MACD_MOMENTUM, Dimension.MACD_CROSSOVER),
    "overbought": (Dimension.RSI_LEVEL, Dimension.RSI_ZONE),
    "volatility": (Dimension.BB_POSITION, Dimension.BB_WIDTH),
    "candle": (Dimension.CANDLE_BODY, Dimension.CANDLE_DIRECTION),
    "time": (Dimension.SESSION,),
}

DEFAULT_VECTOR: FeatureVector = (
    0.0,
    0.5,
    0.5,
    0.0,
    0.5,
    0.5,
    0.5,
    0.5,
    0.5,
    0.5,
    0.5,
    0.5,
)
ZERO_VECTOR: FeatureVector = (0.0,) * VECTOR_DIMENSION

BULLISH = 1.0
NEUTRAL = 0.5
BEARISH = 0.0

_SLOPE_VOTES = {"up": 1.0, "down": -1.0, "flat": 0.0}
_POSITION_VOTES = {"above": 0.5, "below": -0.5, "at": 0.0}
_CROSSOVER_VALUES = {"bullish": BULLISH, "bearish": BEARISH, "none": NEUTRAL}
_ZONE_VALUES = {"overbought": 1.0, "oversold": 0.0, "neutral": 0.5}


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def zero_vector() -> FeatureVector:
    return ZERO_VECTOR


def default_vector() -> FeatureVector:
    """The all-neutral vector used when nothing is known about the market."""
    return DEFAULT_VECTOR


def is_valid_vector(vector: Any) -> bool:
    """True only for a list, tuple or 1-D array of exactly 12 finite real numbers."""
    if isinstance(vector, np.ndarray):
        if vector.ndim != 1:
            return False
        vector = vector.tolist()
    if not isinstance(vector, (list, tuple)):
        return False
    if len(vector) != VECTOR_DIMENSION:
        return False
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        if not math.isfinite(value):
            return False
    return True


@dataclass(frozen=True)
class CandleShape:
    """Body and wick proportions of one candle, relative to its range."""

    body_ratio: float
    upper_wick_ratio: float
    lower_wick_ratio: float
    direction: float

    @classmethod
    def from_candle(cls, candle: Candle, doji_body_ratio: float = 0.1) -> "CandleShape":
        rng = candle.high - candle.low
        if rng <= 0:
            return cls(0.0, 0.0, 0.0, NEUTRAL)

        body_ratio = _clamp(abs(candle.close - candle.open) / rng)
        upper = candle.high - max(candle.open, candle.close)
        lower = min(candle.open, candle.close) - candle.low

        if body_ratio < doji_body_ratio:
            direction = NEUTRAL
        elif candle.close > candle.open:
            direction = BULLISH
        else:
            direction = BEARISH

        return cls(
            body_ratio=body_ratio,
            upper_wick_ratio=_clamp(upper / rng),
            lower_wick_ratio=_clamp(lower / rng),
            direction=direction,
        )

    @property
    def is_doji(self) -> bool:
        return self.direction == NEUTRAL


class FeatureVectorBuilder:
    """
    Builds 12-D feature vectors from candles and optional indicator readings.

    Missing readings fall back to the neutral value of their dimension, so
    ``build`` never raises for incomplete indicator data.
    """

    def __init__(self, settings: Optional[FeatureSettings] = None):
        self.settings = settings or FeatureSettings()

    def build(
        self,
        candle: Candle,
        readings: Optional[IndicatorReadings] = None,
        timestamp: Optional[datetime] = None,
    ) -> FeatureVector:
        readings = readings or IndicatorReadings()
        close = readings.close if readings.close is not None else candle.close
        shape = CandleShape.from_candle(candle, self.settings.doji_body_ratio)
        return self._assemble(readings, close, shape.body_ratio, shape.direction, timestamp)

    def build_from_readings(
        self, readings: IndicatorReadings, timestamp: Optional[datetime] = None
    ) -> FeatureVector:
        """Vector for when only indicator readings are known; candle dims stay neutral."""
        return self._assemble(readings, readings.close, NEUTRAL, NEUTRAL, timestamp)

    def _assemble(
        self,
        readings: IndicatorReadings,
        close: Optional[float],
        body_ratio: float,
        direction: float,
        timestamp: Optional[datetime],
    ) -> FeatureVector:
        values = [
            self.trend_direction(readings),
            self.trend_strength(readings, close),
            self.trend_alignment(readings),
            self.macd_momentum(readings),
            self.macd_crossover(readings),
            self.rsi_level(readings),
            self.rsi_zone(readings),
            self.bollinger_position(readings, close),
            self.bollinger_width(readings),
            body_ratio,
            direction,
            self.session_flag(timestamp),
        ]
        return tuple(
            float(v) if math.isfinite(v) else DEFAULT_VECTOR[i]
            for i, v in enumerate(values)
        )

    # --- trend -----------------------------------------------------------

    @staticmethod
    def trend_direction(readings: IndicatorReadings) -> float:
        votes = []
        if readings.sma_slope is not None:
            votes.append(_SLOPE_VOTES[readings.sma_slope])
        if readings.ema_slope is not None:
            votes.append(_SLOPE_VOTES[readings.ema_slope])
        if readings.price_vs_sma is not None:
            votes.append(_POSITION_VOTES[readings.price_vs_sma])
        if not votes:
            return 0.0
        return _clamp(sum(votes) / len(votes), -1.0, 1.0)

    @staticmethod
    def trend_strength(readings: IndicatorReadings, close: Optional[float]) -> float:
        if readings.atr_relative is not None:
            return _clamp(readings.atr_relative * 5)
        if readings.sma is not None and close is not None and close > 0:
            return _clamp(abs(close - readings.sma) / close * 10)
        return 0.5

    @staticmethod
    def trend_alignment(readings: IndicatorReadings) -> float:
        sma_slope, ema_slope = readings.sma_slope, readings.ema_slope
        if sma_slope is None or ema_slope is None:
            slope_part = 0.25
        elif sma_slope == ema_slope:
            slope_part = 0.5
        elif "flat" in (sma_slope, ema_slope):
            slope_part = 0.25
        else:
            slope_part = 0.0

        vs_sma, vs_ema = readings.price_vs_sma, readings.price_vs_ema
        if vs_sma is not None and vs_sma == vs_ema:
            price_part = 0.5
        else:
            price_part = 0.25

        return _clamp(slope_part + price_part)

    # --- momentum --------------------------------------------------------

    def macd_momentum(self, readings: IndicatorReadings) -> float:
        if readings.macd_histogram is None:
            return 0.0
        return math.tanh(readings.macd_histogram / self.settings.macd_scale)

    @staticmethod
    def macd_crossover(readings: IndicatorReadings) -> float:
        if readings.macd_crossover is None:
            return NEUTRAL
        return _CROSSOVER_VALUES[readings.macd_crossover]

    # --- overbought / oversold -------------------------------------------

    @staticmethod
    def rsi_level(readings: IndicatorReadings) -> float:
        if readings.rsi is None:
            return 0.5
        return _clamp(readings.rsi / 100.0)

    def rsi_zone(self, readings: IndicatorReadings) -> float:
        if readings.rsi_zone is not None:
            return _ZONE_VALUES[readings.rsi_zone]
        if readings.rsi is None:
            return 0.5
        if readings.rsi >= self.settings.rsi_overbought:
            return 1.0
        if readings.rsi <= self.settings.rsi_oversold:
            return 0.0
        return 0.5

    # --- volatility ------------------------------------------------------

    @staticmethod
    def bollinger_position(readings: IndicatorReadings, close: Optional[float]) -> float:
        if readings.bb_position is not None:
            return _clamp(readings.bb_position)
        upper, lower = readings.bb_upper, readings.bb_lower
        if upper is not None and lower is not None and close is not None and upper > lower:
            return _clamp((close - lower) / (upper - lower))
        return 0.5

    def bollinger_width(self, readings: IndicatorReadings) -> float:
        ceiling = self.settings.bb_width_ceiling
        if readings.bb_width is not None:
            return _clamp(readings.bb_width / ceiling)
        upper, lower, middle = readings.bb_upper, readings.bb_lower, readings.bb_middle
        if upper is not None and lower is not None and middle is not None and middle > 0:
            return _clamp((upper - lower) / middle / ceiling)
        return 0.5

    # --- time ------------------------------------------------------------

    def session_flag(self, timestamp: Optional[datetime]) -> float:
        if timestamp is None:
            return self.settings.neutral_session_value
        hour = utc_hour(timestamp)
        for _name, start, end, value in self.settings.session_windows:
            if start <= hour < end:
                return value
        return self.settings.neutral_session_value


__all__ = [
    "FeatureVector",
    "VECTOR_DIMENSION",
    "Dimension",
    "DIMENSION_GROUPS",
    "DEFAULT_VECTOR",
    "ZERO_VECTOR",
    "CandleShape",
    "FeatureVectorBuilder",
    "is_valid_vector",
    "zero_vector",
    "default_vector",
]
