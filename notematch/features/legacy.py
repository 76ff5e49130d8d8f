"""
Legacy vector layouts and anchor ingestion.

Older notes stored 7-, 8- or 18-dimension vectors. They are mapped onto the
12-D layout slot by slot; slots with no legacy counterpart keep their neutral
default. The mappings are approximations (several legacy fields feed two
slots) and are kept as data so they can be reviewed in one place.
"""

from __future__ import annotations

import math
from enum import Enum
from numbers import Real
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from notematch.core.exceptions import InvalidVectorDimension
from notematch.features.vector import DEFAULT_VECTOR, VECTOR_DIMENSION, FeatureVector


class LegacyFormat(str, Enum):
    D7 = "7d"
    D8 = "8d"
    D18 = "18d"

    @property
    def dimension(self) -> int:
        return int(self.value[:-1])

    @classmethod
    def for_length(cls, length: int) -> Optional["LegacyFormat"]:
        for fmt in cls:
            if fmt.dimension == length:
                return fmt
        return None


# (target slot, legacy source indices averaged together, offset added after averaging)
SlotMapping = Tuple[int, Tuple[int, ...], float]

LEGACY_MAPPINGS: Dict[LegacyFormat, Tuple[SlotMapping, ...]] = {
    # price change, volume, rsi, macd, trend, volatility, time flag
    LegacyFormat.D7: (
        (0, (4,), 0.0),
        (1, (5,), 0.0),
        (3, (3,), 0.0),
        (5, (2,), 0.0),
        (7, (5,), 0.0),
        (11, (6,), 0.0),
    ),
    # rsi, sma position, ema position, macd hist, bb position, stoch k, atr relative, obv
    LegacyFormat.D8: (
        (0, (1, 2), -1.0),
        (1, (6,), 0.0),
        (3, (3,), 0.0),
        (5, (0,), 0.0),
        (7, (4,), 0.0),
        (8, (6,), 0.0),
    ),
    # rsi 0-2, macd 3-6, bollinger 7-9, sma 10-13, ema 14-17
    LegacyFormat.D18: (
        (0, (11, 15), 0.0),
        (1, (12, 16), 0.0),
        (2, (13,), 0.0),
        (3, (3,), 0.0),
        (4, (4,), 0.0),
        (5, (0,), 0.0),
        (6, (2,), 0.0),
        (7, (7,), 0.0),
        (8, (8,), 0.0),
    ),
}

ANCHOR_DIMENSIONS = (7, 8, VECTOR_DIMENSION, 18)


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        return math.nan
    return float(value)


def convert_legacy_vector(
    vector: Sequence[float], fmt: Optional[LegacyFormat] = None
) -> FeatureVector:
    """
    Map a legacy vector onto the 12-D layout.

    ``fmt`` defaults to the format matching ``len(vector)``. A vector shorter
    than its format yields the default vector; a slot whose sources are not
    finite keeps its default. The result is always 12-D.
    """
    values = [_as_float(v) for v in vector]
    if fmt is None:
        fmt = LegacyFormat.for_length(len(values))
        if fmt is None:
            raise InvalidVectorDimension(len(values))
    fmt = LegacyFormat(fmt)

    result = list(DEFAULT_VECTOR)
    if len(values) < fmt.dimension:
        return tuple(result)

    for target, sources, offset in LEGACY_MAPPINGS[fmt]:
        picked = [values[i] for i in sources]
        if not all(math.isfinite(p) for p in picked):
            continue
        result[target] = sum(picked) / len(picked) + offset
    return tuple(result)


def to_anchor_vector(
    vector: Any, *, note_id: Optional[str] = None
) -> Tuple[FeatureVector, Optional[LegacyFormat]]:
    """
    Validate a stored anchor vector and bring it to the 12-D layout.

    Returns the vector plus the legacy format that was converted, if any.
    Raises InvalidVectorDimension for lengths other than 7, 8, 12 or 18 and
    for anything that is not a sequence of numbers.
    """
    if isinstance(vector, np.ndarray):
        if vector.ndim != 1:
            raise InvalidVectorDimension(None, "anchor feature vector must be one-dimensional")
        vector = vector.tolist()
    if isinstance(vector, (str, bytes)) or not isinstance(vector, Sequence):
        raise InvalidVectorDimension(None, "anchor feature vector must be a sequence of numbers")

    length = len(vector)
    if length not in ANCHOR_DIMENSIONS:
        raise InvalidVectorDimension(length)
    if any(isinstance(v, bool) or not isinstance(v, Real) for v in vector):
        raise InvalidVectorDimension(length, "anchor feature vector must contain only numbers")

    if length == VECTOR_DIMENSION:
        values = [float(v) for v in vector]
        bad = [i for i, v in enumerate(values) if not math.isfinite(v)]
        if bad:
            logger.warning(
                "[anchor] note={} non-finite values at dims {} replaced with 0",
                note_id or "-",
                bad,
            )
            values = [0.0 if i in bad else v for i, v in enumerate(values)]
        return tuple(values), None

    fmt = LegacyFormat.for_length(length)
    logger.info(
        "[anchor] note={} converting legacy {} vector to {}-D",
        note_id or "-",
        fmt.value,
        VECTOR_DIMENSION,
    )
    return convert_legacy_vector(vector, fmt), fmt


__all__ = [
    "LegacyFormat",
    "LEGACY_MAPPINGS",
    "ANCHOR_DIMENSIONS",
    "convert_legacy_vector",
    "to_anchor_vector",
]
