"""
notematch feature package

This package includes:
- `vector`: the 12-D feature vector layout and its builder
- `legacy`: conversion of stored 7/8/18-D vectors and anchor ingestion
- `indicators`: pandas indicator maths (RSI, SMA, EMA, ATR, MACD, Bollinger)
- `snapshot`: indicator readings and candles from an OHLCV frame

Everything here is pure computation with no I/O.
"""

from notematch.features.legacy import LegacyFormat, convert_legacy_vector, to_anchor_vector
from notematch.features.vector import (
    DEFAULT_VECTOR,
    DIMENSION_GROUPS,
    VECTOR_DIMENSION,
    ZERO_VECTOR,
    CandleShape,
    Dimension,
    FeatureVector,
    FeatureVectorBuilder,
    default_vector,
    is_valid_vector,
    zero_vector,
)

__all__ = [
    "DEFAULT_VECTOR",
    "DIMENSION_GROUPS",
    "VECTOR_DIMENSION",
    "ZERO_VECTOR",
    "CandleShape",
    "Dimension",
    "FeatureVector",
    "FeatureVectorBuilder",
    "LegacyFormat",
    "convert_legacy_vector",
    "default_vector",
    "is_valid_vector",
    "to_anchor_vector",
    "zero_vector",
]
