"""
Random-entry baseline for backtest results.

Each iteration replays the candles, entering at a candle's close with a fixed
probability and a coin-flip side, and exits through the same take-profit,
stop-loss and timeout rules as ``BacktestSimulator``. The distributions of
win rate, profit factor, max drawdown and net pnl across iterations show how
much of a strategy's result a random entry would also have produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from time import perf_counter
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from notematch.backtest.engine import (
    FLAT,
    BacktestParams,
    BacktestSimulator,
    InPosition,
    State,
    candles_in_time_order,
)
from notematch.backtest.metrics import summarize_events
from notematch.backtest.model import BacktestEvent, BacktestSummary
from notematch.core.exceptions import ConfigError, DataValidationError
from notematch.core.models import AnchorPattern, Candle, Side
from notematch.features.snapshot import candles_from_frame
from notematch.features.vector import DEFAULT_VECTOR

MIN_CANDLES = 10
# stands in for an infinite profit factor so distributions stay finite
PROFIT_FACTOR_CAP = 10.0
HISTOGRAM_BINS = 10
PERCENTILES = (5, 25, 50, 75, 95)
METRICS = ("win_rate", "profit_factor", "max_drawdown", "net_pnl")


class Assessment(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"
    VERY_POOR = "very_poor"


_ASSESSMENT_FLOORS: Tuple[Tuple[float, Assessment, str], ...] = (
    (90.0, Assessment.EXCELLENT, "strategy far outperforms random entries"),
    (75.0, Assessment.GOOD, "strategy outperforms random entries"),
    (50.0, Assessment.AVERAGE, "strategy performs about as well as random entries"),
    (25.0, Assessment.POOR, "strategy underperforms random entries; review its parameters"),
    (0.0, Assessment.VERY_POOR, "strategy is far behind random entries"),
)


@dataclass(frozen=True)
class MonteCarloParams:
    """
    Attributes:
        iterations (int): Number of random-entry replays.
        entry_probability (float): Chance of entering on any candle while flat.
        seed (Optional[int]): Seed for the random generator; None draws fresh entropy.
    """

    iterations: int = 500
    entry_probability: float = 0.05
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.iterations < 1:
            raise ConfigError("iterations must be at least 1")
        if not 0 < self.entry_probability <= 1:
            raise ConfigError("entry_probability must be in (0, 1]")


@dataclass(frozen=True)
class SimulationStats:
    iteration: int
    setup_count: int
    win_rate: float
    profit_factor: float
    max_drawdown: float
    net_pnl: float


@dataclass(frozen=True)
class HistogramBin:
    lower: float
    upper: float
    count: int
    percentage: float


@dataclass(frozen=True)
class DistributionStats:
    mean: float
    median: float
    std: float
    min: float
    max: float
    percentiles: Dict[int, float]
    histogram: Tuple[HistogramBin, ...]

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "DistributionStats":
        arr = np.asarray(values, dtype=float)
        lo, hi = float(arr.min()), float(arr.max())
        # constant samples still get HISTOGRAM_BINS bins of width 0.1
        upper = hi if hi > lo else lo + 0.1 * HISTOGRAM_BINS
        counts, edges = np.histogram(arr, bins=HISTOGRAM_BINS, range=(lo, upper))
        histogram = tuple(
            HistogramBin(
                lower=float(edges[i]),
                upper=float(edges[i + 1]),
                count=int(count),
                percentage=float(count) / arr.size * 100.0,
            )
            for i, count in enumerate(counts)
        )
        return cls(
            mean=float(arr.mean()),
            median=float(np.median(arr)),
            std=float(arr.std()),
            min=lo,
            max=hi,
            percentiles={
                p: float(np.percentile(arr, p, method="lower")) for p in PERCENTILES
            },
            histogram=histogram,
        )


@dataclass(frozen=True)
class StrategyComparison:
    """
    Where a strategy ranks among the random runs, per metric.

    Each percentile is the share of random runs the strategy beats: lower
    values beat for max drawdown, higher values for everything else.
    """

    win_rate_percentile: float
    profit_factor_percentile: float
    max_drawdown_percentile: float
    net_pnl_percentile: float
    assessment: Assessment
    comment: str

    @property
    def average_percentile(self) -> float:
        return (
            self.win_rate_percentile
            + self.profit_factor_percentile
            + self.max_drawdown_percentile
            + self.net_pnl_percentile
        ) / 4.0


@dataclass(frozen=True)
class MonteCarloResult:
    simulations: Tuple[SimulationStats, ...]
    statistics: Dict[str, DistributionStats]
    comparison: Optional[StrategyComparison] = None

    @property
    def iterations(self) -> int:
        return len(self.simulations)


def _capped_profit_factor(value: float) -> float:
    return min(float(value), PROFIT_FACTOR_CAP)


def _net_pnl(summary: BacktestSummary) -> float:
    return summary.total_profit - summary.total_loss


def _beats(values: np.ndarray, target: float, *, lower_is_better: bool = False) -> float:
    wins = values > target if lower_is_better else values < target
    return float(wins.mean() * 100.0)


def compare_with_baseline(
    simulations: Sequence[SimulationStats], actual: BacktestSummary
) -> StrategyComparison:
    """Rank a strategy's summary against random-entry runs."""
    if not simulations:
        raise ConfigError("cannot compare against an empty set of simulations")

    def column(name: str) -> np.ndarray:
        return np.array([getattr(s, name) for s in simulations], dtype=float)

    ranks = {
        "win_rate": _beats(column("win_rate"), actual.win_rate),
        "profit_factor": _beats(
            column("profit_factor"), _capped_profit_factor(actual.profit_factor)
        ),
        "max_drawdown": _beats(
            column("max_drawdown"), actual.max_drawdown, lower_is_better=True
        ),
        "net_pnl": _beats(column("net_pnl"), _net_pnl(actual)),
    }
    average = sum(ranks.values()) / len(ranks)
    for floor, assessment, comment in _ASSESSMENT_FLOORS:
        if average >= floor:
            break
    return StrategyComparison(
        win_rate_percentile=ranks["win_rate"],
        profit_factor_percentile=ranks["profit_factor"],
        max_drawdown_percentile=ranks["max_drawdown"],
        net_pnl_percentile=ranks["net_pnl"],
        assessment=assessment,
        comment=comment,
    )


class RandomEntryBaseline:
    """Monte Carlo replays of random entries under one set of exit rules."""

    def __init__(
        self,
        params: BacktestParams,
        mc_params: Optional[MonteCarloParams] = None,
        *,
        symbol: str = "-",
    ):
        self.params = params
        self.mc_params = mc_params or MonteCarloParams()
        self._exits: Dict[Side, BacktestSimulator] = {
            side: BacktestSimulator(
                AnchorPattern(
                    symbol=symbol,
                    side=side,
                    entry_price=1.0,
                    feature_vector=DEFAULT_VECTOR,
                    note_id=f"random-{side.value}",
                ),
                params,
            )
            for side in Side
        }

    def simulate_once(
        self, candles: Sequence[Candle], rng: np.random.Generator
    ) -> List[BacktestEvent]:
        """One replay over time-ordered ``candles``; a position left open is closed on the last one."""
        events: List[BacktestEvent] = []
        state: State = FLAT
        exits = self._exits[Side.BUY]
        for candle in candles:
            if isinstance(state, InPosition):
                state, event = exits.step(state, candle)
                if event is not None:
                    events.append(event)
                continue
            if candle.close > 0 and rng.random() < self.mc_params.entry_probability:
                exits = self._exits[Side.BUY if rng.random() < 0.5 else Side.SELL]
                state = InPosition(
                    entry_time=candle.timestamp, entry_price=candle.close, match_score=0.0
                )

        final = exits.close_out(state, candles[-1])
        if final is not None:
            events.append(final)
        return events

    def run(
        self,
        candles: Union[Sequence[Candle], pd.DataFrame],
        actual: Optional[BacktestSummary] = None,
    ) -> MonteCarloResult:
        """
        Replay random entries ``iterations`` times.

        Raises DataValidationError with fewer than MIN_CANDLES candles. When
        ``actual`` is given, the result carries its ranking against the runs.
        """
        if isinstance(candles, pd.DataFrame):
            candles = candles_from_frame(candles)
        candles = candles_in_time_order(candles, note="random")
        if len(candles) < MIN_CANDLES:
            raise DataValidationError(
                f"random-entry baseline needs at least {MIN_CANDLES} candles, got {len(candles)}"
            )

        iterations = self.mc_params.iterations
        logger.info(
            "[montecarlo] start iterations={} candles={} p_entry={:.3f} seed={}",
            iterations,
            len(candles),
            self.mc_params.entry_probability,
            self.mc_params.seed,
        )
        started = perf_counter()
        rng = np.random.default_rng(self.mc_params.seed)

        simulations: List[SimulationStats] = []
        for i in range(iterations):
            summary = summarize_events(self.simulate_once(candles, rng))
            simulations.append(
                SimulationStats(
                    iteration=i,
                    setup_count=summary.setup_count,
                    win_rate=summary.win_rate,
                    profit_factor=_capped_profit_factor(summary.profit_factor),
                    max_drawdown=summary.max_drawdown,
                    net_pnl=_net_pnl(summary),
                )
            )
            if (i + 1) % 100 == 0:
                logger.debug("[montecarlo] progress {}/{}", i + 1, iterations)

        statistics = {
            name: DistributionStats.from_values([getattr(s, name) for s in simulations])
            for name in METRICS
        }
        comparison = compare_with_baseline(simulations, actual) if actual is not None else None

        logger.info(
            "[montecarlo] done iterations={} mean_win_rate={:.3f} assessment={} duration_ms={:.1f}",
            iterations,
            statistics["win_rate"].mean,
            comparison.assessment.value if comparison else "-",
            (perf_counter() - started) * 1000.0,
        )
        return MonteCarloResult(
            simulations=tuple(simulations),
            statistics=statistics,
            comparison=comparison,
        )


__all__ = [
    "Assessment",
    "MonteCarloParams",
    "SimulationStats",
    "HistogramBin",
    "DistributionStats",
    "StrategyComparison",
    "MonteCarloResult",
    "RandomEntryBaseline",
    "compare_with_baseline",
]
