from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

from notematch.core.models import AnchorPattern, Candle
from notematch.logging_utils import setup_test_logging

os.environ.setdefault("ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def load_env():
    load_dotenv(override=False)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    setup_test_logging(Path("notematch-logs/"))
    yield


@pytest.fixture
def t0() -> datetime:
    # 10:00 UTC sits in the London session window
    return datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_candle():
    def _make(ts, o, h, l, c, v=0.0):
        return Candle(timestamp=ts, open=o, high=h, low=l, close=c, volume=v)

    return _make


@pytest.fixture
def flat_candles(t0, make_candle):
    """Twenty 15-minute candles with no price movement at all."""
    return [
        make_candle(t0 + timedelta(minutes=15 * i), 100.0, 100.0, 100.0, 100.0)
        for i in range(20)
    ]


@pytest.fixture
def make_anchor():
    def _make(vector, side="buy", entry_price=100.0, trend=None, note_id="note-1"):
        return AnchorPattern(
            symbol="BTCUSD",
            side=side,
            entry_price=entry_price,
            feature_vector=list(vector),
            timeframe="15m",
            trend=trend,
            note_id=note_id,
        )

    return _make
