"""
Technical indicators on pandas series.

Vectorised calculations used to derive indicator readings for the latest bar
of an OHLCV frame. Warm-up rows are NaN (or back-filled for RSI) and are
dropped to ``None`` when readings are constructed.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd
from loguru import logger


def rsi(series: pd.Series, period: int = 14) -> pd.Series:
    """
    Compute Relative Strength Index (RSI) with Wilder smoothing.

    Parameters
    ----------
    series : pd.Series
        Price series (e.g., closing prices).
    period : int, default 14
        Lookback period for RSI.

    Returns
    -------
    pd.Series
        RSI values scaled 0-100; empty when the input is shorter than ``period``.
    """
    if series is None or len(series) < period:
        logger.debug(
            "[indicators] RSI input too short (len={} < period={})",
            len(series) if series is not None else None,
            period,
        )
        return pd.Series(dtype=float)

    delta = series.diff()
    gain = delta.clip(lower=0)
    loss = -delta.clip(upper=0)

    avg_gain = gain.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()

    rs = avg_gain / avg_loss.replace(0, np.nan)
    rsi_val = 100 - (100 / (1 + rs))
    no_loss = avg_loss == 0
    rsi_val = rsi_val.mask(no_loss & (avg_gain > 0), 100.0)
    rsi_val = rsi_val.mask(no_loss & (avg_gain == 0), 50.0)
    return rsi_val.bfill().clip(0, 100)


def sma(series: pd.Series, period: int = 20) -> pd.Series:
    """Simple moving average; NaN until ``period`` values are available."""
    return series.rolling(window=period, min_periods=period).mean()


def ema(series: pd.Series, period: int = 20) -> pd.Series:
    """Exponential moving average."""
    return series.ewm(span=period, adjust=False).mean()


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Average True Range using OHLC data.
    Requires columns: 'high', 'low', 'close'.
    """
    if not all(c in df.columns for c in ["high", "low", "close"]):
        raise ValueError("DataFrame must contain columns: high, low, close")
    prev_close = df["close"].shift()
    true_range = pd.concat(
        [
            df["high"] - df["low"],
            (df["high"] - prev_close).abs(),
            (df["low"] - prev_close).abs(),
        ],
        axis=1,
    ).max(axis=1)
    return true_range.ewm(alpha=1 / period, min_periods=period, adjust=False).mean()


def macd(
    series: pd.Series, fast: int = 12, slow: int = 26, signal: int = 9
) -> pd.DataFrame:
    """
    MACD line, signal line and histogram.

    Returns a frame with columns ``macd``, ``signal`` and ``histogram``; rows
    before ``slow`` observations are NaN.
    """
    line = ema(series, fast) - ema(series, slow)
    sig = line.ewm(span=signal, adjust=False).mean()
    out = pd.DataFrame({"macd": line, "signal": sig, "histogram": line - sig})
    out.iloc[: max(slow - 1, 0)] = np.nan
    return out


def bollinger(series: pd.Series, period: int = 20, num_std: float = 2.0) -> pd.DataFrame:
    """Bollinger bands (population std) with %B and relative width."""
    middle = sma(series, period)
    std = series.rolling(window=period, min_periods=period).std(ddof=0)
    upper = middle + num_std * std
    lower = middle - num_std * std
    band = (upper - lower).replace(0, np.nan)
    return pd.DataFrame(
        {
            "upper": upper,
            "middle": middle,
            "lower": lower,
            "percent_b": (series - lower) / band,
            "width": (upper - lower) / middle.replace(0, np.nan),
        }
    )


def trend_vote(
    close: float,
    rsi_value: Optional[float] = None,
    sma_value: Optional[float] = None,
    ema_value: Optional[float] = None,
    histogram: Optional[float] = None,
) -> str:
    """
    Classify the trend as ``uptrend``, ``downtrend`` or ``neutral``.

    RSI vs 50, close vs SMA, close vs EMA and the MACD histogram sign each cast
    one vote; a side needs more than one vote over the other to win.
    """
    bull = bear = 0
    if rsi_value is not None:
        bull += rsi_value > 50
        bear += rsi_value < 50
    if sma_value is not None:
        bull += close > sma_value
        bear += close < sma_value
    if ema_value is not None:
        bull += close > ema_value
        bear += close < ema_value
    if histogram is not None:
        bull += histogram > 0
        bear += histogram < 0

    if bull > bear + 1:
        return "uptrend"
    if bear > bull + 1:
        return "downtrend"
    return "neutral"


__all__ = ["rsi", "sma", "ema", "atr", "macd", "bollinger", "trend_vote"]
