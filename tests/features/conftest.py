from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


@pytest.fixture(scope="module")
def toy_ohlcv() -> pd.DataFrame:
    """
    Deterministic 15-minute series with two regimes:
    - Slow drift
    - Strong climb over the last third
    """
    rng = np.random.default_rng(seed=42)
    n = 120
    idx = pd.date_range("2024-01-02 00:00", periods=n, freq="15min", tz="UTC")

    drift = np.r_[np.full(80, 0.0001), np.full(40, 0.004)]
    noise = rng.normal(0.0, 0.002, n)
    close = 100.0 * np.cumprod(1 + drift + noise)

    high = close * (1 + np.clip(rng.normal(0.002, 0.001, n), 0, None))
    low = close * (1 - np.clip(rng.normal(0.002, 0.001, n), 0, None))
    open_ = pd.Series(close).shift(1).fillna(close[0]).to_numpy()
    high = np.maximum(high, np.maximum(open_, close))
    low = np.minimum(low, np.minimum(open_, close))
    vol = rng.integers(1_000, 5_000, n)

    return pd.DataFrame(
        {"open": open_, "high": high, "low": low, "close": close, "volume": vol},
        index=idx,
    ).astype(
        {"open": float, "high": float, "low": float, "close": float, "volume": int}
    )
