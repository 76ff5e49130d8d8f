from __future__ import annotations

import math

import numpy as np
import pytest

from notematch.core.exceptions import DataValidationError, InvalidVectorDimension
from notematch.features.legacy import (
    LEGACY_MAPPINGS,
    LegacyFormat,
    convert_legacy_vector,
    to_anchor_vector,
)
from notematch.features.vector import DEFAULT_VECTOR, is_valid_vector


def test_seven_dim_mapping():
    old = [0.01, 0.3, 0.62, -0.2, 1.0, 0.4, 0.8]
    vec = convert_legacy_vector(old)

    assert len(vec) == 12
    assert vec[0] == 1.0
    assert vec[1] == 0.4
    assert vec[3] == -0.2
    assert vec[5] == 0.62
    assert vec[7] == 0.4
    assert vec[11] == 0.8
    for untouched in (2, 4, 6, 8, 9, 10):
        assert vec[untouched] == DEFAULT_VECTOR[untouched]


def test_eight_dim_mapping_derives_direction_from_ma_positions():
    old = [0.55, 1.5, 1.0, 0.1, 0.7, 0.2, 0.3, 1.0]
    vec = convert_legacy_vector(old)

    assert vec[0] == pytest.approx(0.25)
    assert vec[1] == 0.3
    assert vec[3] == 0.1
    assert vec[5] == 0.55
    assert vec[7] == 0.7
    assert vec[8] == 0.3


def test_eighteen_dim_mapping():
    old = [round(0.05 * i, 2) for i in range(18)]
    vec = convert_legacy_vector(old)

    assert vec[0] == pytest.approx((old[11] + old[15]) / 2)
    assert vec[1] == pytest.approx((old[12] + old[16]) / 2)
    assert vec[2] == old[13]
    assert vec[3] == old[3]
    assert vec[4] == old[4]
    assert vec[5] == old[0]
    assert vec[6] == old[2]
    assert vec[7] == old[7]
    assert vec[8] == old[8]
    assert vec[9:] == DEFAULT_VECTOR[9:]


@pytest.mark.parametrize("fmt", list(LegacyFormat))
def test_conversion_always_yields_valid_12d(fmt):
    rng = np.random.default_rng(7)
    old = rng.uniform(-1, 1, fmt.dimension).tolist()
    assert is_valid_vector(list(convert_legacy_vector(old, fmt)))


def test_short_vector_for_explicit_format_returns_defaults():
    assert convert_legacy_vector([0.1, 0.2, 0.3], LegacyFormat.D8) == DEFAULT_VECTOR


def test_non_finite_source_keeps_slot_default():
    old = [0.01, 0.3, float("nan"), -0.2, 1.0, 0.4, 0.8]
    vec = convert_legacy_vector(old)
    assert vec[5] == DEFAULT_VECTOR[5]
    assert all(math.isfinite(v) for v in vec)


def test_every_mapping_targets_a_valid_slot():
    for fmt, mappings in LEGACY_MAPPINGS.items():
        for target, sources, _offset in mappings:
            assert 0 <= target < 12
            assert all(0 <= s < fmt.dimension for s in sources)


def test_anchor_ingestion_accepts_12d_unchanged():
    vec, fmt = to_anchor_vector(list(DEFAULT_VECTOR))
    assert vec == DEFAULT_VECTOR
    assert fmt is None


def test_anchor_ingestion_converts_legacy():
    vec, fmt = to_anchor_vector([0.0] * 18, note_id="n-18")
    assert fmt is LegacyFormat.D18
    assert len(vec) == 12


def test_anchor_ingestion_zeroes_non_finite_12d():
    raw = list(DEFAULT_VECTOR)
    raw[5] = float("inf")
    vec, _ = to_anchor_vector(raw)
    assert vec[5] == 0.0


@pytest.mark.parametrize("length", [0, 1, 6, 9, 11, 13, 17, 19, 24])
def test_anchor_ingestion_rejects_other_lengths(length):
    with pytest.raises(InvalidVectorDimension) as excinfo:
        to_anchor_vector([0.5] * length)
    assert excinfo.value.length == length
    assert isinstance(excinfo.value, DataValidationError)


@pytest.mark.parametrize("bad", [None, "abcdefghijkl", 12, [0.5] * 11 + ["x"]])
def test_anchor_ingestion_rejects_non_numeric(bad):
    with pytest.raises(InvalidVectorDimension):
        to_anchor_vector(bad)


def test_anchor_ingestion_accepts_numpy():
    vec, fmt = to_anchor_vector(np.full(7, 0.5))
    assert fmt is LegacyFormat.D7
    assert len(vec) == 12
