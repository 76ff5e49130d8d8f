from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import pandas as pd
from loguru import logger

from notematch.backtest.metrics import summarize_events
from notematch.backtest.model import BacktestEvent, BacktestResult, Outcome
from notematch.core.exceptions import ConfigError
from notematch.core.models import AnchorPattern, Candle, IndicatorReadings, Side
from notematch.core.timeutils import as_utc, minutes_between
from notematch.features.legacy import to_anchor_vector
from notematch.features.snapshot import candles_from_frame
from notematch.features.vector import Dimension, FeatureVector, FeatureVectorBuilder
from notematch.matching.confirmation import RuleConfirmationLayer
from notematch.matching.similarity import SimilarityEvaluator
from notematch.settings import BacktestSettings

# open-to-close move beyond which a candle counts as directional
DIRECTION_THRESHOLD = 0.005
STRENGTH_SCALE = 20.0


class EntryScoring(str, Enum):
    COSINE = "cosine"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class BacktestParams:
    """
    Parameters of one backtest run.

    Attributes:
        match_threshold (float): Minimum entry score to open a position.
        take_profit_pct (float): Take-profit distance from entry, in percent.
        stop_loss_pct (float): Stop-loss distance from entry, in percent.
        max_holding_minutes (float): Holding time after which a position times out.
        trading_cost_pct (float): One-way trading cost in percent; charged twice per trade.
        entry_scoring (EntryScoring): Raw cosine, or the rule-confirmed composite.
    """

    match_threshold: float
    take_profit_pct: float
    stop_loss_pct: float
    max_holding_minutes: float = 1440.0
    trading_cost_pct: float = 0.0
    entry_scoring: EntryScoring = EntryScoring.COSINE

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "entry_scoring", EntryScoring(self.entry_scoring))
        except ValueError as exc:
            raise ConfigError(f"unknown entry scoring mode: {self.entry_scoring!r}") from exc
        if not self.take_profit_pct > 0:
            raise ConfigError("take_profit_pct must be positive")
        if not self.stop_loss_pct > 0:
            raise ConfigError("stop_loss_pct must be positive")
        if not self.max_holding_minutes > 0:
            raise ConfigError("max_holding_minutes must be positive")
        if self.trading_cost_pct < 0:
            raise ConfigError("trading_cost_pct must not be negative")

    @classmethod
    def from_settings(
        cls,
        take_profit_pct: float,
        stop_loss_pct: float,
        *,
        settings: Optional[BacktestSettings] = None,
        **overrides,
    ) -> "BacktestParams":
        """Fill threshold, holding time and cost from BacktestSettings unless overridden."""
        settings = settings or BacktestSettings()
        values = {
            "match_threshold": settings.match_threshold,
            "max_holding_minutes": settings.max_holding_minutes,
            "trading_cost_pct": settings.trading_cost_pct,
        }
        values.update(overrides)
        return cls(take_profit_pct=take_profit_pct, stop_loss_pct=stop_loss_pct, **values)


@dataclass(frozen=True)
class Flat:
    pass


@dataclass(frozen=True)
class InPosition:
    entry_time: datetime
    entry_price: float
    match_score: float


State = Union[Flat, InPosition]
FLAT = Flat()


def candles_in_time_order(candles: Sequence[Candle], *, note: str = "-") -> List[Candle]:
    """Candles sorted by UTC timestamp; repeats after the first are dropped."""
    ordered = sorted(candles, key=lambda c: as_utc(c.timestamp))
    if ordered != list(candles):
        logger.debug("[backtest] note={} candles re-sorted into ascending time order", note)

    kept: List[Candle] = []
    previous: Optional[datetime] = None
    for candle in ordered:
        stamp = as_utc(candle.timestamp)
        if stamp == previous:
            continue
        kept.append(candle)
        previous = stamp

    dropped = len(ordered) - len(kept)
    if dropped:
        logger.warning(
            "[backtest] note={} dropped {} candle(s) with a repeated timestamp", note, dropped
        )
    return kept


class BacktestSimulator:
    """
    Replays an anchor pattern over historical candles.

    The simulator is Flat until a candle's market vector scores at or above
    the match threshold, then enters at that candle's close. Open positions
    are checked on each later candle for take-profit, stop-loss and timeout,
    in that order. Candles are consumed once, in ascending timestamp order.
    """

    def __init__(
        self,
        anchor: AnchorPattern,
        params: BacktestParams,
        *,
        builder: Optional[FeatureVectorBuilder] = None,
        evaluator: Optional[SimilarityEvaluator] = None,
        confirmation: Optional[RuleConfirmationLayer] = None,
    ):
        self.anchor = anchor
        self.params = params
        self.builder = builder or FeatureVectorBuilder()
        self.evaluator = evaluator or SimilarityEvaluator()
        self.confirmation = confirmation or RuleConfirmationLayer(
            self.builder, self.evaluator
        )
        self.anchor_vector, self.anchor_format = to_anchor_vector(
            anchor.feature_vector, note_id=anchor.note_id
        )

    # ---- scoring ----
    def market_vector(self, candle: Candle) -> FeatureVector:
        """
        Vector for one historical candle.

        Candle and session dims come from the builder; indicator dims stay
        neutral because indicator history is not replayed. Trend dims are
        derived from the candle's own open-to-close move.
        """
        values = list(
            self.builder.build(candle, IndicatorReadings(), timestamp=candle.timestamp)
        )
        change = candle.price_change
        if change > DIRECTION_THRESHOLD:
            direction = 1.0
        elif change < -DIRECTION_THRESHOLD:
            direction = -1.0
        else:
            direction = 0.0
        values[Dimension.TREND_DIRECTION] = direction
        values[Dimension.TREND_STRENGTH] = min(1.0, abs(change) * STRENGTH_SCALE)
        values[Dimension.TREND_ALIGNMENT] = 0.5
        return tuple(values)

    def entry_score(self, candle: Candle) -> float:
        vector = self.market_vector(candle)
        if self.params.entry_scoring == EntryScoring.CONFIRMED:
            direction = vector[Dimension.TREND_DIRECTION]
            trend = "uptrend" if direction > 0 else "downtrend" if direction < 0 else "neutral"
            evaluation = self.confirmation.score_vector(
                self.anchor, vector, candle.close, trend, anchor_vector=self.anchor_vector
            )
            return evaluation.score
        return self.evaluator.cosine(self.anchor_vector, vector)

    # ---- position handling ----
    def exit_levels(self, entry_price: float) -> Tuple[float, float]:
        """Take-profit and stop-loss prices for a position opened at ``entry_price``."""
        tp = self.params.take_profit_pct / 100.0
        sl = self.params.stop_loss_pct / 100.0
        if self.anchor.side == Side.BUY:
            return entry_price * (1 + tp), entry_price * (1 - sl)
        return entry_price * (1 - tp), entry_price * (1 + sl)

    def pnl_percent(self, entry_price: float, exit_price: float) -> float:
        raw = (exit_price - entry_price) / entry_price
        if self.anchor.side == Side.SELL:
            raw = -raw
        return (raw - 2 * self.params.trading_cost_pct / 100.0) * 100.0

    def _close(
        self, state: InPosition, candle: Candle, exit_price: float, outcome: Outcome
    ) -> BacktestEvent:
        return BacktestEvent(
            entry_time=state.entry_time,
            entry_price=state.entry_price,
            match_score=state.match_score,
            exit_time=candle.timestamp,
            exit_price=exit_price,
            outcome=outcome,
            pnl_percent=self.pnl_percent(state.entry_price, exit_price),
        )

    def step(
        self, state: State, candle: Candle
    ) -> Tuple[State, Optional[BacktestEvent]]:
        """Advance the state machine by one candle."""
        if isinstance(state, InPosition):
            take_profit, stop_loss = self.exit_levels(state.entry_price)
            if self.anchor.side == Side.BUY:
                tp_hit = candle.high >= take_profit
                sl_hit = candle.low <= stop_loss
            else:
                tp_hit = candle.low <= take_profit
                sl_hit = candle.high >= stop_loss

            # TP wins when both levels sit inside one candle's range
            if tp_hit:
                return FLAT, self._close(state, candle, take_profit, Outcome.WIN)
            if sl_hit:
                return FLAT, self._close(state, candle, stop_loss, Outcome.LOSS)
            held = minutes_between(state.entry_time, candle.timestamp)
            if held >= self.params.max_holding_minutes:
                return FLAT, self._close(state, candle, candle.close, Outcome.TIMEOUT)
            return state, None

        if candle.close <= 0:
            return state, None
        score = self.entry_score(candle)
        if score >= self.params.match_threshold:
            logger.debug(
                "[backtest] entry t={} px={:.4f} score={:.4f}",
                candle.timestamp,
                candle.close,
                score,
            )
            return (
                InPosition(
                    entry_time=candle.timestamp,
                    entry_price=candle.close,
                    match_score=score,
                ),
                None,
            )
        return state, None

    def close_out(self, state: State, candle: Candle) -> Optional[BacktestEvent]:
        """Force-close an open position at ``candle``'s close as a timeout."""
        if not isinstance(state, InPosition):
            return None
        return self._close(state, candle, candle.close, Outcome.TIMEOUT)

    def run(self, candles: Union[Sequence[Candle], pd.DataFrame]) -> BacktestResult:
        """
        Simulate over ``candles`` and aggregate the closed trades.

        Candles are replayed in ascending timestamp order whatever order they
        arrive in. When several share a timestamp only the first is used.
        """
        if isinstance(candles, pd.DataFrame):
            candles = candles_from_frame(candles)
        note = self.anchor.note_id or "-"
        candles = candles_in_time_order(candles, note=note)

        if not candles:
            logger.warning("[backtest] note={} empty candle window; nothing to simulate", note)
            return BacktestResult(
                events=(),
                summary=summarize_events([]),
                candle_count=0,
                anchor_format=self.anchor_format,
            )

        logger.info(
            "[backtest] start note={} symbol={} side={} candles={} threshold={:.3f} scoring={}",
            note,
            self.anchor.symbol,
            self.anchor.side.value,
            len(candles),
            self.params.match_threshold,
            self.params.entry_scoring.value,
        )

        events: List[BacktestEvent] = []
        state: State = FLAT
        for candle in candles:
            state, event = self.step(state, candle)
            if event is not None:
                events.append(event)

        final = self.close_out(state, candles[-1])
        if final is not None:
            events.append(final)

        summary = summarize_events(events)
        logger.info(
            "[backtest] done note={} trades={} win_rate={:.3f} pf={} total_pnl={:.4f}",
            note,
            summary.setup_count,
            summary.win_rate,
            summary.profit_factor,
            sum(e.pnl_percent for e in events),
        )
        return BacktestResult(
            events=tuple(events),
            summary=summary,
            candle_count=len(candles),
            anchor_format=self.anchor_format,
        )


__all__ = [
    "EntryScoring",
    "BacktestParams",
    "Flat",
    "InPosition",
    "State",
    "FLAT",
    "BacktestSimulator",
    "candles_in_time_order",
    "candles_from_frame",
]
