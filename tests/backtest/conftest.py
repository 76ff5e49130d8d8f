from __future__ import annotations

from datetime import timedelta

import pytest

from notematch.backtest.engine import BacktestParams, BacktestSimulator
from notematch.features.vector import DEFAULT_VECTOR


@pytest.fixture
def trend_candles(t0, make_candle):
    """
    Build ``n`` 15-minute candles moving ``step`` (fractional) per bar.

    Each candle opens at the previous close and its range is exactly its body.
    """

    def _make(n=20, step=0.01, start=100.0):
        candles = []
        price = start
        for i in range(n):
            nxt = price * (1 + step)
            candles.append(
                make_candle(
                    t0 + timedelta(minutes=15 * i),
                    price,
                    max(price, nxt),
                    min(price, nxt),
                    nxt,
                )
            )
            price = nxt
        return candles

    return _make


@pytest.fixture
def params():
    def _make(**overrides):
        values = {
            "match_threshold": 0.99,
            "take_profit_pct": 2.0,
            "stop_loss_pct": 2.0,
            "max_holding_minutes": 60.0,
        }
        values.update(overrides)
        return BacktestParams(**values)

    return _make


@pytest.fixture
def anchor_like(make_anchor, params):
    """Anchor whose vector equals the simulator's market vector for ``candle``."""

    def _make(candle, side="buy", **kwargs):
        reference = BacktestSimulator(make_anchor(DEFAULT_VECTOR), params())
        return make_anchor(reference.market_vector(candle), side=side, **kwargs)

    return _make
