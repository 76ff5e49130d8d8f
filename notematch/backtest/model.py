from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from notematch.core.timeutils import minutes_between
from notematch.features.legacy import LegacyFormat


class Outcome(str, Enum):
    WIN = "win"
    LOSS = "loss"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class BacktestEvent:
    """
    One simulated trade.

    Attributes:
        entry_time (datetime): Timestamp of the candle whose close was the entry.
        entry_price (float): Entry fill price.
        match_score (float): Score that triggered the entry.
        exit_time (datetime): Timestamp of the exit candle.
        exit_price (float): Exit fill price (TP/SL level or candle close).
        outcome (Outcome): win, loss or timeout.
        pnl_percent (float): Net percentage result after trading costs.
    """

    entry_time: datetime
    entry_price: float
    match_score: float
    exit_time: datetime
    exit_price: float
    outcome: Outcome
    pnl_percent: float

    @property
    def holding_minutes(self) -> float:
        return minutes_between(self.entry_time, self.exit_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_time": self.entry_time.isoformat(),
            "entry_price": self.entry_price,
            "match_score": self.match_score,
            "exit_time": self.exit_time.isoformat(),
            "exit_price": self.exit_price,
            "outcome": self.outcome.value,
            "pnl_percent": self.pnl_percent,
            "holding_minutes": self.holding_minutes,
        }


@dataclass(frozen=True)
class BacktestSummary:
    setup_count: int = 0
    win_count: int = 0
    loss_count: int = 0
    timeout_count: int = 0
    win_rate: float = 0.0
    profit_factor: float = 0.0
    total_profit: float = 0.0
    total_loss: float = 0.0
    average_pnl: float = 0.0
    expectancy: float = 0.0
    max_drawdown: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    sharpe_ratio: Optional[float] = None
    sortino_ratio: Optional[float] = None
    p_value: Optional[float] = None
    is_statistically_significant: Optional[bool] = None
    confidence_level: str = "low"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BacktestResult:
    """Events, aggregate summary and run metadata of one simulation."""

    events: Tuple[BacktestEvent, ...] = ()
    summary: BacktestSummary = field(default_factory=BacktestSummary)
    candle_count: int = 0
    anchor_format: Optional[LegacyFormat] = None

    @property
    def is_empty_window(self) -> bool:
        """True when no candles were supplied, as opposed to candles with no matches."""
        return self.candle_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "summary": self.summary.to_dict(),
            "candle_count": self.candle_count,
            "anchor_format": self.anchor_format.value if self.anchor_format else None,
            "is_empty_window": self.is_empty_window,
        }


__all__ = ["Outcome", "BacktestEvent", "BacktestSummary", "BacktestResult"]
