"""Centralized notematch settings powered by Pydantic.

Environment matrix:

| Section      | Environment Variable              | Default | Purpose                                         |
|--------------|-----------------------------------|---------|-------------------------------------------------|
| Features     | `NOTEMATCH_MACD_SCALE`            | `50`    | Divisor inside tanh() for the MACD histogram    |
| Features     | `NOTEMATCH_BB_WIDTH_CEILING`      | `0.05`  | Relative band width that maps to 1.0            |
| Features     | `NOTEMATCH_RSI_OVERBOUGHT`        | `70`    | RSI at/above which the zone is overbought       |
| Features     | `NOTEMATCH_RSI_OVERSOLD`          | `30`    | RSI at/below which the zone is oversold         |
| Features     | `NOTEMATCH_DOJI_BODY_RATIO`       | `0.1`   | Body/range ratio below which a candle is a doji |
| Features     | `NOTEMATCH_SESSION_*`             | see below | UTC session windows and flag values           |
| Similarity   | `NOTEMATCH_TIER_STRONG`           | `0.90`  | Cosine at/above which a match is strong         |
| Similarity   | `NOTEMATCH_TIER_MEDIUM`           | `0.80`  | Cosine at/above which a match is medium         |
| Similarity   | `NOTEMATCH_TIER_WEAK`             | `0.70`  | Cosine at/above which a match is weak           |
| Confirmation | `NOTEMATCH_WEIGHT_SIMILARITY`     | `0.6`   | Weight of the raw cosine in the composite       |
| Confirmation | `NOTEMATCH_WEIGHT_TREND`          | `0.3`   | Weight of trend label agreement                 |
| Confirmation | `NOTEMATCH_WEIGHT_PRICE`          | `0.1`   | Weight of price proximity                       |
| Confirmation | `NOTEMATCH_PRICE_TOLERANCE`       | `0.05`  | Max relative distance from the anchor entry     |
| Backtest     | `MATCH_THRESHOLD`                 | `0.75`  | Default entry threshold                         |
| Backtest     | `NOTEMATCH_MAX_HOLDING_MINUTES`   | `1440`  | Default timeout for an open position            |
| Backtest     | `NOTEMATCH_TRADING_COST_PCT`      | `0.0`   | Default one-way trading cost in percent         |
| Backtest     | `NOTEMATCH_MAX_WORKERS`           | `4`     | Thread pool size for batch runs                 |

Session windows are UTC hours, checked in order Tokyo, London, New York; the
windows overlap and the first match wins.

The structs below are passed into builders, evaluators and simulators at
construction time. They source environment variables when instantiated and are
frozen afterwards.
"""

from __future__ import annotations

from typing import Tuple

from pydantic import BaseModel, Field, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=True,
        frozen=True,
    )


class FeatureSettings(_SettingsBase):
    """Normalisation constants used by the feature vector builder."""

    macd_scale: float = Field(default=50.0, gt=0, alias="NOTEMATCH_MACD_SCALE")
    bb_width_ceiling: float = Field(
        default=0.05, gt=0, alias="NOTEMATCH_BB_WIDTH_CEILING"
    )
    rsi_overbought: float = Field(default=70.0, alias="NOTEMATCH_RSI_OVERBOUGHT")
    rsi_oversold: float = Field(default=30.0, alias="NOTEMATCH_RSI_OVERSOLD")
    doji_body_ratio: float = Field(
        default=0.1, ge=0, le=1, alias="NOTEMATCH_DOJI_BODY_RATIO"
    )

    tokyo_start_hour: int = Field(default=0, ge=0, le=24, alias="NOTEMATCH_SESSION_TOKYO_START")
    tokyo_end_hour: int = Field(default=9, ge=0, le=24, alias="NOTEMATCH_SESSION_TOKYO_END")
    london_start_hour: int = Field(default=7, ge=0, le=24, alias="NOTEMATCH_SESSION_LONDON_START")
    london_end_hour: int = Field(default=16, ge=0, le=24, alias="NOTEMATCH_SESSION_LONDON_END")
    ny_start_hour: int = Field(default=13, ge=0, le=24, alias="NOTEMATCH_SESSION_NY_START")
    ny_end_hour: int = Field(default=22, ge=0, le=24, alias="NOTEMATCH_SESSION_NY_END")

    tokyo_value: float = Field(default=0.2, alias="NOTEMATCH_SESSION_TOKYO_VALUE")
    london_value: float = Field(default=0.5, alias="NOTEMATCH_SESSION_LONDON_VALUE")
    ny_value: float = Field(default=0.8, alias="NOTEMATCH_SESSION_NY_VALUE")
    neutral_session_value: float = Field(
        default=0.5, alias="NOTEMATCH_SESSION_NEUTRAL_VALUE"
    )

    @model_validator(mode="after")
    def _check_rsi_bounds(self) -> "FeatureSettings":
        if not self.rsi_oversold < self.rsi_overbought:
            raise ValueError("rsi_oversold must be below rsi_overbought")
        return self

    @computed_field
    @property
    def session_windows(self) -> Tuple[Tuple[str, int, int, float], ...]:
        return (
            ("tokyo", self.tokyo_start_hour, self.tokyo_end_hour, self.tokyo_value),
            ("london", self.london_start_hour, self.london_end_hour, self.london_value),
            ("new_york", self.ny_start_hour, self.ny_end_hour, self.ny_value),
        )


class SimilaritySettings(_SettingsBase):
    """Tier thresholds applied to cosine similarity."""

    strong: float = Field(default=0.90, alias="NOTEMATCH_TIER_STRONG")
    medium: float = Field(default=0.80, alias="NOTEMATCH_TIER_MEDIUM")
    weak: float = Field(default=0.70, alias="NOTEMATCH_TIER_WEAK")

    @model_validator(mode="after")
    def _check_descending(self) -> "SimilaritySettings":
        if not (self.strong >= self.medium >= self.weak):
            raise ValueError("tier thresholds must satisfy strong >= medium >= weak")
        return self


class ConfirmationSettings(_SettingsBase):
    """Weights of the rule-confirmed composite score."""

    similarity_weight: float = Field(
        default=0.6, ge=0, le=1, alias="NOTEMATCH_WEIGHT_SIMILARITY"
    )
    trend_weight: float = Field(default=0.3, ge=0, le=1, alias="NOTEMATCH_WEIGHT_TREND")
    price_weight: float = Field(default=0.1, ge=0, le=1, alias="NOTEMATCH_WEIGHT_PRICE")
    price_tolerance: float = Field(
        default=0.05, gt=0, alias="NOTEMATCH_PRICE_TOLERANCE"
    )


class BacktestSettings(_SettingsBase):
    """Defaults for backtest runs when the caller leaves a parameter unset."""

    match_threshold: float = Field(default=0.75, alias="MATCH_THRESHOLD")
    max_holding_minutes: float = Field(
        default=1440.0, gt=0, alias="NOTEMATCH_MAX_HOLDING_MINUTES"
    )
    trading_cost_pct: float = Field(
        default=0.0, ge=0, alias="NOTEMATCH_TRADING_COST_PCT"
    )
    max_workers: int = Field(default=4, ge=1, alias="NOTEMATCH_MAX_WORKERS")


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    features: FeatureSettings = Field(default_factory=FeatureSettings)
    similarity: SimilaritySettings = Field(default_factory=SimilaritySettings)
    confirmation: ConfirmationSettings = Field(default_factory=ConfirmationSettings)
    backtest: BacktestSettings = Field(default_factory=BacktestSettings)

    model_config = {
        "frozen": True,
    }


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    return Settings()


def reload_settings() -> Settings:
    """Alias for get_settings to maintain a consistent API."""
    return get_settings()


def get_feature_settings() -> FeatureSettings:
    return get_settings().features


def get_similarity_settings() -> SimilaritySettings:
    return get_settings().similarity


def get_confirmation_settings() -> ConfirmationSettings:
    return get_settings().confirmation


def get_backtest_settings() -> BacktestSettings:
    return get_settings().backtest


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "FeatureSettings",
    "SimilaritySettings",
    "ConfirmationSettings",
    "BacktestSettings",
    "get_feature_settings",
    "get_similarity_settings",
    "get_confirmation_settings",
    "get_backtest_settings",
]
