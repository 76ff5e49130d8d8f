from __future__ import annotations

import math
from datetime import datetime, timezone

import numpy as np
import pytest

from notematch.core.models import IndicatorReadings
from notematch.features.vector import (
    DEFAULT_VECTOR,
    DIMENSION_GROUPS,
    ZERO_VECTOR,
    CandleShape,
    Dimension,
    FeatureVectorBuilder,
    default_vector,
    is_valid_vector,
    zero_vector,
)
from notematch.settings import FeatureSettings


@pytest.fixture(scope="module")
def builder() -> FeatureVectorBuilder:
    return FeatureVectorBuilder(FeatureSettings())


def _at(hour: int) -> datetime:
    return datetime(2024, 3, 4, hour, 30, tzinfo=timezone.utc)


def test_empty_readings_give_neutral_indicator_dims(builder, make_candle, t0):
    candle = make_candle(t0, 100.0, 101.0, 99.0, 100.0)
    vec = builder.build(candle)

    assert len(vec) == 12
    assert vec[Dimension.TREND_DIRECTION] == 0.0
    assert vec[Dimension.MACD_MOMENTUM] == 0.0
    for dim in (
        Dimension.TREND_STRENGTH,
        Dimension.MACD_CROSSOVER,
        Dimension.RSI_LEVEL,
        Dimension.RSI_ZONE,
        Dimension.BB_POSITION,
        Dimension.BB_WIDTH,
    ):
        assert vec[dim] == 0.5
    # no timestamp passed: session is neutral
    assert vec[Dimension.SESSION] == 0.5


def test_rsi_level_and_zone(builder):
    vec = builder.build_from_readings(IndicatorReadings(rsi=70))
    assert vec[Dimension.RSI_LEVEL] == pytest.approx(0.70)
    assert vec[Dimension.RSI_ZONE] == 1.0

    assert builder.build_from_readings(IndicatorReadings(rsi=30))[Dimension.RSI_ZONE] == 0.0
    assert builder.build_from_readings(IndicatorReadings(rsi=50))[Dimension.RSI_ZONE] == 0.5
    assert builder.build_from_readings(IndicatorReadings(rsi=140))[Dimension.RSI_LEVEL] == 1.0


def test_explicit_rsi_zone_label_wins(builder):
    vec = builder.build_from_readings(IndicatorReadings(rsi=75, rsi_zone="neutral"))
    assert vec[Dimension.RSI_ZONE] == 0.5


def test_macd_dims(builder):
    vec = builder.build_from_readings(
        IndicatorReadings(macd_histogram=50.0, macd_crossover="bullish")
    )
    assert vec[Dimension.MACD_MOMENTUM] == pytest.approx(math.tanh(1.0))
    assert vec[Dimension.MACD_CROSSOVER] == 1.0

    bearish = builder.build_from_readings(IndicatorReadings(macd_crossover="Bearish"))
    assert bearish[Dimension.MACD_CROSSOVER] == 0.0


def test_trend_dims(builder):
    readings = IndicatorReadings(
        sma_slope="up", ema_slope="up", price_vs_sma="above", price_vs_ema="above"
    )
    vec = builder.build_from_readings(readings)
    assert vec[Dimension.TREND_DIRECTION] == pytest.approx((1 + 1 + 0.5) / 3)
    assert vec[Dimension.TREND_ALIGNMENT] == pytest.approx(1.0)

    mixed = IndicatorReadings(sma_slope="up", ema_slope="down", price_vs_sma="above")
    vec = builder.build_from_readings(mixed)
    assert vec[Dimension.TREND_DIRECTION] == pytest.approx(0.5 / 3)
    assert vec[Dimension.TREND_ALIGNMENT] == pytest.approx(0.25)

    flat = IndicatorReadings(sma_slope="flat", ema_slope="up")
    assert builder.build_from_readings(flat)[Dimension.TREND_ALIGNMENT] == pytest.approx(0.5)


def test_trend_strength_fallbacks(builder):
    assert builder.build_from_readings(IndicatorReadings(atr_relative=0.1))[
        Dimension.TREND_STRENGTH
    ] == pytest.approx(0.5)
    assert builder.build_from_readings(IndicatorReadings(atr_relative=0.5))[
        Dimension.TREND_STRENGTH
    ] == 1.0
    vec = builder.build_from_readings(IndicatorReadings(sma=98.0, close=100.0))
    assert vec[Dimension.TREND_STRENGTH] == pytest.approx(0.2)


def test_bollinger_dims(builder):
    readings = IndicatorReadings(bb_upper=110.0, bb_middle=100.0, bb_lower=90.0, close=105.0)
    vec = builder.build_from_readings(readings)
    assert vec[Dimension.BB_POSITION] == pytest.approx(0.75)
    # width 0.2 relative is far above the 0.05 ceiling
    assert vec[Dimension.BB_WIDTH] == 1.0

    vec = builder.build_from_readings(IndicatorReadings(bb_position=1.4, bb_width=0.025))
    assert vec[Dimension.BB_POSITION] == 1.0
    assert vec[Dimension.BB_WIDTH] == pytest.approx(0.5)


def test_bollinger_uses_candle_close_when_readings_lack_one(builder, make_candle, t0):
    candle = make_candle(t0, 90.0, 96.0, 89.0, 95.0)
    readings = IndicatorReadings(bb_upper=110.0, bb_lower=90.0)
    assert builder.build(candle, readings)[Dimension.BB_POSITION] == pytest.approx(0.25)


@pytest.mark.parametrize(
    "o,h,l,c,direction",
    [
        (100.0, 106.0, 99.0, 105.0, 1.0),
        (105.0, 106.0, 99.0, 100.0, 0.0),
        (100.0, 105.0, 95.0, 100.5, 0.5),
        (100.0, 100.0, 100.0, 100.0, 0.5),
    ],
)
def test_candle_direction(builder, make_candle, t0, o, h, l, c, direction):
    vec = builder.build(make_candle(t0, o, h, l, c))
    assert vec[Dimension.CANDLE_DIRECTION] == direction


def test_zero_range_candle_is_doji_with_zero_body(make_candle, t0):
    shape = CandleShape.from_candle(make_candle(t0, 50.0, 50.0, 50.0, 50.0))
    assert shape.body_ratio == 0.0
    assert shape.is_doji


def test_candle_shape_wicks(make_candle, t0):
    shape = CandleShape.from_candle(make_candle(t0, 100.0, 110.0, 90.0, 105.0))
    assert shape.body_ratio == pytest.approx(0.25)
    assert shape.upper_wick_ratio == pytest.approx(0.25)
    assert shape.lower_wick_ratio == pytest.approx(0.5)
    assert shape.direction == 1.0


@pytest.mark.parametrize(
    "hour,expected",
    [(3, 0.2), (8, 0.2), (10, 0.5), (15, 0.5), (17, 0.8), (21, 0.8), (23, 0.5)],
)
def test_session_flag(builder, hour, expected):
    assert builder.session_flag(_at(hour)) == expected


def test_session_flag_reads_naive_as_utc(builder):
    assert builder.session_flag(datetime(2024, 3, 4, 18, 0)) == 0.8


def test_builder_is_deterministic(builder, make_candle, t0):
    candle = make_candle(t0, 100.0, 103.0, 98.0, 102.0)
    readings = IndicatorReadings(rsi=61.2, macd_histogram=-12.0, sma_slope="down")
    assert builder.build(candle, readings, t0) == builder.build(candle, readings, t0)


def test_non_finite_readings_are_treated_as_missing(builder):
    vec = builder.build_from_readings(IndicatorReadings(rsi=float("nan"), atr_relative="inf"))
    assert vec == builder.build_from_readings(IndicatorReadings())
    assert all(math.isfinite(v) for v in vec)


def test_build_from_readings_uses_neutral_candle_dims(builder):
    vec = builder.build_from_readings(IndicatorReadings())
    assert vec[Dimension.CANDLE_BODY] == 0.5
    assert vec[Dimension.CANDLE_DIRECTION] == 0.5


def test_custom_macd_scale():
    builder = FeatureVectorBuilder(FeatureSettings(macd_scale=10))
    vec = builder.build_from_readings(IndicatorReadings(macd_histogram=10.0))
    assert vec[Dimension.MACD_MOMENTUM] == pytest.approx(math.tanh(1.0))


@pytest.mark.parametrize(
    "value,ok",
    [
        (list(DEFAULT_VECTOR), True),
        (DEFAULT_VECTOR, True),
        (np.zeros(12), True),
        ([0.5] * 11, False),
        ([0.5] * 13, False),
        ([0.5] * 11 + [float("nan")], False),
        ([0.5] * 11 + [float("inf")], False),
        ([0.5] * 11 + [True], False),
        ([0.5] * 11 + ["0.5"], False),
        ([0.5] * 11 + [None], False),
        (np.zeros((3, 4)), False),
        ("x" * 12, False),
        (None, False),
    ],
)
def test_is_valid_vector(value, ok):
    assert is_valid_vector(value) is ok


def test_vector_constants():
    assert zero_vector() == ZERO_VECTOR == (0.0,) * 12
    assert default_vector() == DEFAULT_VECTOR
    assert sorted(i for idx in DIMENSION_GROUPS.values() for i in idx) == list(range(12))
