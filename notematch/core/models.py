from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Tuple

from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic.fields import AliasChoices

SlopeLabel = Literal["up", "down", "flat"]
PositionLabel = Literal["above", "below", "at"]
ZoneLabel = Literal["overbought", "oversold", "neutral"]
CrossoverLabel = Literal["bullish", "bearish", "none"]
DirectionLabel = Literal["rising", "falling", "flat"]

_LABEL_CHOICES = {
    "rsi_direction": {"rising", "falling", "flat"},
    "rsi_zone": {"overbought", "oversold", "neutral"},
    "macd_crossover": {"bullish", "bearish", "none"},
    "sma_slope": {"up", "down", "flat"},
    "ema_slope": {"up", "down", "flat"},
    "price_vs_sma": {"above", "below", "at"},
    "price_vs_ema": {"above", "below", "at"},
}


class Side(str, Enum):
    """Direction of the recorded trade."""

    BUY = "buy"
    SELL = "sell"

    @classmethod
    def _missing_(cls, value: object) -> Optional["Side"]:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class Candle(BaseModel):
    """
    A Pydantic model for one OHLCV candle.

    Attributes:
        timestamp (datetime): Bar open time; naive values are read as UTC.
        open (float): The open price.
        high (float): The high price.
        low (float): The low price.
        close (float): The close price.
        volume (float): The traded volume.
    """

    timestamp: datetime = Field(
        validation_alias=AliasChoices("timestamp", "t", "time")
    )
    open: float = Field(validation_alias=AliasChoices("open", "o"))
    high: float = Field(validation_alias=AliasChoices("high", "h"))
    low: float = Field(validation_alias=AliasChoices("low", "l", "lo"))
    close: float = Field(validation_alias=AliasChoices("close", "c"))
    volume: float = Field(0.0, validation_alias=AliasChoices("volume", "v"))

    @property
    def range(self) -> float:
        """The high-low range of the candle."""
        return self.high - self.low

    @property
    def body(self) -> float:
        """The absolute body size of the candle."""
        return abs(self.close - self.open)

    @property
    def price_change(self) -> float:
        """Open-to-close change as a fraction of the open; 0 when open is not positive."""
        if self.open <= 0:
            return 0.0
        return (self.close - self.open) / self.open

    def __repr__(self) -> str:
        return (
            f"Candle(t={self.timestamp.isoformat()}, o={self.open:.4f}, "
            f"h={self.high:.4f}, l={self.low:.4f}, c={self.close:.4f})"
        )

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
        "frozen": True,
        "allow_inf_nan": False,
    }


def _finite_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class IndicatorReadings(BaseModel):
    """
    Indicator values available for one candle; every field is optional.

    Non-finite or unparseable numbers and unknown labels are normalised to
    ``None`` here, so the feature builder only ever distinguishes "present"
    from "absent".
    """

    rsi: Optional[float] = None
    rsi_direction: Optional[DirectionLabel] = None
    rsi_zone: Optional[ZoneLabel] = None

    macd_line: Optional[float] = None
    macd_signal: Optional[float] = None
    macd_histogram: Optional[float] = None
    macd_crossover: Optional[CrossoverLabel] = None

    sma: Optional[float] = None
    ema: Optional[float] = None
    sma_slope: Optional[SlopeLabel] = None
    ema_slope: Optional[SlopeLabel] = None
    price_vs_sma: Optional[PositionLabel] = None
    price_vs_ema: Optional[PositionLabel] = None

    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None
    bb_position: Optional[float] = None
    bb_width: Optional[float] = None

    atr: Optional[float] = None
    atr_relative: Optional[float] = None

    close: Optional[float] = None
    trend: Optional[str] = None

    @field_validator(
        "rsi",
        "macd_line",
        "macd_signal",
        "macd_histogram",
        "sma",
        "ema",
        "bb_upper",
        "bb_middle",
        "bb_lower",
        "bb_position",
        "bb_width",
        "atr",
        "atr_relative",
        "close",
        mode="before",
    )
    @classmethod
    def _coerce_number(cls, value: Any) -> Optional[float]:
        return _finite_or_none(value)

    @field_validator(*_LABEL_CHOICES.keys(), mode="before")
    @classmethod
    def _coerce_label(cls, value: Any, info: ValidationInfo) -> Optional[str]:
        if not isinstance(value, str):
            return None
        lowered = value.strip().lower()
        return lowered if lowered in _LABEL_CHOICES[info.field_name] else None

    @field_validator("trend", mode="before")
    @classmethod
    def _coerce_trend(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        label = str(value).strip().lower()
        return label or None

    model_config = {"extra": "ignore", "frozen": True}


class AnchorPattern(BaseModel):
    """
    The recorded trade ("note") that live and historical market states are matched against.

    Attributes:
        symbol (str): Instrument symbol.
        side (Side): Buy or sell.
        entry_price (float): Price at which the recorded trade was entered.
        feature_vector (Tuple[float, ...]): Stored vector; 12-D or a legacy 7/8/18-D layout.
        timeframe (str): Candle timeframe the note was recorded on (e.g. "15m").
        trend (Optional[str]): Trend label at the time of the note.
        note_id (Optional[str]): Identifier assigned by the surrounding system.
    """

    symbol: str
    side: Side
    entry_price: float = Field(validation_alias=AliasChoices("entry_price", "entryPrice"))
    feature_vector: Tuple[float, ...] = Field(
        validation_alias=AliasChoices("feature_vector", "featureVector")
    )
    timeframe: str = "15m"
    trend: Optional[str] = None
    note_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("note_id", "noteId", "id")
    )

    @field_validator("trend", mode="before")
    @classmethod
    def _coerce_trend(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        label = str(value).strip().lower()
        return label or None

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}


class MarketObservation(BaseModel):
    """One candle plus whatever indicator readings were derived for it."""

    candle: Candle
    readings: IndicatorReadings = Field(default_factory=IndicatorReadings)
    symbol: Optional[str] = None
    timeframe: Optional[str] = None

    @property
    def trend(self) -> Optional[str]:
        return self.readings.trend

    model_config = {"extra": "ignore", "frozen": True}


__all__ = [
    "Side",
    "Candle",
    "IndicatorReadings",
    "AnchorPattern",
    "MarketObservation",
]
