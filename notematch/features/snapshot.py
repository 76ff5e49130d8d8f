"""
Indicator snapshots from OHLCV frames.

Turns a pandas OHLCV frame (columns open/high/low/close, optional volume,
timestamps in a ``timestamp`` column or a DatetimeIndex) into candles and
into the indicator readings of its latest bar.
"""

from __future__ import annotations

import math
from typing import List, Optional

import pandas as pd
from loguru import logger
from pydantic import ValidationError

from notematch.core.exceptions import DataValidationError
from notematch.core.models import Candle, IndicatorReadings, MarketObservation
from notematch.features import indicators

REQUIRED_COLUMNS = ("open", "high", "low", "close")

# relative change below which a moving average counts as flat and a price as "at" it
FLAT_TOLERANCE = 0.0005
RSI_DIRECTION_TOLERANCE = 1.0


def _check_frame(df: pd.DataFrame) -> None:
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise DataValidationError(f"OHLCV frame is missing columns: {', '.join(missing)}")


def _timestamps(df: pd.DataFrame) -> pd.Series:
    if "timestamp" in df.columns:
        ts = pd.to_datetime(df["timestamp"], utc=True)
    elif isinstance(df.index, pd.DatetimeIndex):
        ts = pd.Series(df.index, index=df.index)
        ts = ts.dt.tz_localize("UTC") if ts.dt.tz is None else ts.dt.tz_convert("UTC")
    else:
        raise DataValidationError(
            "OHLCV frame needs a 'timestamp' column or a DatetimeIndex"
        )
    return ts


def candles_from_frame(df: pd.DataFrame) -> List[Candle]:
    """
    Convert an OHLCV frame into a list of candles in row order.

    Raises DataValidationError for missing columns, missing time information
    or a row that is not a valid candle (for example a NaN or infinite price).
    """
    _check_frame(df)
    if df.empty:
        return []
    stamps = _timestamps(df)
    volumes = df["volume"] if "volume" in df.columns else pd.Series(0.0, index=df.index)
    candles: List[Candle] = []
    rows = zip(stamps, df["open"], df["high"], df["low"], df["close"], volumes)
    for pos, (ts, o, h, l, c, v) in enumerate(rows):
        try:
            candles.append(
                Candle(
                    timestamp=ts.to_pydatetime(),
                    open=float(o),
                    high=float(h),
                    low=float(l),
                    close=float(c),
                    volume=float(v),
                )
            )
        except (TypeError, ValueError, ValidationError) as exc:
            raise DataValidationError(f"invalid OHLCV row at position {pos}: {exc}") from exc
    return candles


def _last(series: pd.Series) -> Optional[float]:
    if series is None or series.empty:
        return None
    value = series.iloc[-1]
    if value is None or pd.isna(value):
        return None
    return float(value)


def _prev(series: pd.Series) -> Optional[float]:
    if series is None or len(series) < 2:
        return None
    value = series.iloc[-2]
    if value is None or pd.isna(value):
        return None
    return float(value)


def _slope(current: Optional[float], previous: Optional[float]) -> Optional[str]:
    if current is None or previous is None or previous == 0:
        return None
    change = (current - previous) / abs(previous)
    if change > FLAT_TOLERANCE:
        return "up"
    if change < -FLAT_TOLERANCE:
        return "down"
    return "flat"


def _position(close: float, level: Optional[float]) -> Optional[str]:
    if level is None or level == 0:
        return None
    gap = (close - level) / abs(level)
    if gap > FLAT_TOLERANCE:
        return "above"
    if gap < -FLAT_TOLERANCE:
        return "below"
    return "at"


def _rsi_direction(current: Optional[float], previous: Optional[float]) -> Optional[str]:
    if current is None or previous is None:
        return None
    if current - previous > RSI_DIRECTION_TOLERANCE:
        return "rising"
    if previous - current > RSI_DIRECTION_TOLERANCE:
        return "falling"
    return "flat"


def _crossover(current: Optional[float], previous: Optional[float]) -> Optional[str]:
    if current is None or previous is None:
        return None
    if previous <= 0 < current:
        return "bullish"
    if previous >= 0 > current:
        return "bearish"
    return "none"


def readings_from_frame(
    df: pd.DataFrame,
    *,
    rsi_period: int = 14,
    ma_period: int = 20,
    atr_period: int = 14,
) -> IndicatorReadings:
    """
    Indicator readings for the last bar of ``df``.

    Indicators still in their warm-up period come back as ``None``; an empty
    frame yields empty readings.
    """
    _check_frame(df)
    if df.empty:
        return IndicatorReadings()

    close_series = df["close"].astype(float)
    close = float(close_series.iloc[-1])

    rsi_series = indicators.rsi(close_series, rsi_period)
    sma_series = indicators.sma(close_series, ma_period)
    ema_series = indicators.ema(close_series, ma_period)
    macd_frame = indicators.macd(close_series)
    bands = indicators.bollinger(close_series, ma_period)
    ohlc = df[["high", "low", "close"]].astype(float)
    atr_series = indicators.atr(ohlc, atr_period)

    rsi_value = _last(rsi_series)
    sma_value = _last(sma_series)
    ema_value = _last(ema_series)
    hist = _last(macd_frame["histogram"])
    atr_value = _last(atr_series)

    readings = IndicatorReadings(
        rsi=rsi_value,
        rsi_direction=_rsi_direction(rsi_value, _prev(rsi_series)),
        macd_line=_last(macd_frame["macd"]),
        macd_signal=_last(macd_frame["signal"]),
        macd_histogram=hist,
        macd_crossover=_crossover(hist, _prev(macd_frame["histogram"])),
        sma=sma_value,
        ema=ema_value,
        sma_slope=_slope(sma_value, _prev(sma_series)),
        ema_slope=_slope(ema_value, _prev(ema_series)),
        price_vs_sma=_position(close, sma_value),
        price_vs_ema=_position(close, ema_value),
        bb_upper=_last(bands["upper"]),
        bb_middle=_last(bands["middle"]),
        bb_lower=_last(bands["lower"]),
        bb_position=_last(bands["percent_b"]),
        bb_width=_last(bands["width"]),
        atr=atr_value,
        atr_relative=atr_value / close if atr_value is not None and close > 0 else None,
        close=close if math.isfinite(close) else None,
        trend=indicators.trend_vote(close, rsi_value, sma_value, ema_value, hist),
    )
    logger.debug(
        "[snapshot] bars={} rsi={} trend={}", len(df), readings.rsi, readings.trend
    )
    return readings


def observation_from_frame(
    df: pd.DataFrame,
    *,
    symbol: Optional[str] = None,
    timeframe: Optional[str] = None,
) -> MarketObservation:
    """Wrap the last bar of ``df`` and its readings into a MarketObservation."""
    _check_frame(df)
    if df.empty:
        raise DataValidationError("cannot build an observation from an empty frame")
    candle = candles_from_frame(df.iloc[[-1]])[0]
    return MarketObservation(
        candle=candle,
        readings=readings_from_frame(df),
        symbol=symbol,
        timeframe=timeframe,
    )


__all__ = ["candles_from_frame", "readings_from_frame", "observation_from_frame"]
