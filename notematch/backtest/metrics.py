# notematch/backtest/metrics.py
from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

import numpy as np
import scipy.stats as ss
from loguru import logger

from notematch.backtest.model import BacktestEvent, BacktestSummary, Outcome

TRADING_DAYS = 252
HIGH_CONFIDENCE_COUNT = 30
MEDIUM_CONFIDENCE_COUNT = 10
SIGNIFICANCE_LEVEL = 0.05


# -------- Internals --------
def _max_drawdown(pnls: np.ndarray) -> float:
    if pnls.size == 0:
        return 0.0
    equity = np.cumsum(pnls)
    peak = np.maximum.accumulate(np.concatenate(([0.0], equity)))[1:]
    return float(max(0.0, (peak - equity).max()))


def _streaks(pnls: np.ndarray) -> Tuple[int, int]:
    max_wins = max_losses = wins = losses = 0
    for p in pnls:
        if p > 0:
            wins += 1
            losses = 0
            max_wins = max(max_wins, wins)
        else:
            losses += 1
            wins = 0
            max_losses = max(max_losses, losses)
    return max_wins, max_losses


def _risk_ratios(pnls: np.ndarray) -> Tuple[Optional[float], Optional[float]]:
    n = pnls.size
    if n < 2:
        return None, None
    mean = float(pnls.mean())
    std = float(pnls.std(ddof=1))
    annual = math.sqrt(TRADING_DAYS)
    sharpe = mean / std * annual if std > 0 else None

    neg = pnls[pnls < 0]
    down = float(math.sqrt((neg**2).mean())) if neg.size else 0.0
    sortino = mean / down * annual if down > 0 else None
    return sharpe, sortino


def _significance(pnls: np.ndarray) -> Tuple[Optional[float], Optional[bool]]:
    """Two-sided one-sample t-test of mean pnl against 0."""
    n = pnls.size
    if n < 2:
        return None, None
    std = float(pnls.std(ddof=1))
    # constant returns give t = 0, p = 1
    t_stat = float(pnls.mean()) / (std / math.sqrt(n)) if std > 0 else 0.0
    p_value = float(2 * (1 - ss.t.cdf(abs(t_stat), df=n - 1)))
    return p_value, p_value < SIGNIFICANCE_LEVEL


def _confidence(n: int) -> str:
    if n >= HIGH_CONFIDENCE_COUNT:
        return "high"
    if n >= MEDIUM_CONFIDENCE_COUNT:
        return "medium"
    return "low"


# -------- Public API --------
def summarize_events(events: Iterable[BacktestEvent]) -> BacktestSummary:
    """
    Aggregate closed trades into a BacktestSummary.

    Win rate counts ``win`` outcomes only, while profit and loss totals (and
    streaks) follow the sign of each event's pnl, so a profitable timeout adds
    to total profit without counting as a win. Ratios whose denominator is 0
    fall back to 0 except profit factor, which is +inf when there is profit and
    no loss.
    """
    events = list(events)
    if not events:
        return BacktestSummary()

    pnls = np.array([float(e.pnl_percent) for e in events], dtype=float)
    n = len(events)
    win_count = sum(1 for e in events if e.outcome == Outcome.WIN)
    loss_count = sum(1 for e in events if e.outcome == Outcome.LOSS)
    timeout_count = sum(1 for e in events if e.outcome == Outcome.TIMEOUT)

    total_profit = float(pnls[pnls > 0].sum())
    total_loss = float(abs(pnls[pnls < 0].sum()))

    win_rate = win_count / n
    if total_loss > 0:
        profit_factor = total_profit / total_loss
    elif total_profit > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    average_win = total_profit / win_count if win_count else 0.0
    average_loss = total_loss / loss_count if loss_count else 0.0
    expectancy = win_rate * average_win - (1 - win_rate) * average_loss
    max_wins, max_losses = _streaks(pnls)
    sharpe, sortino = _risk_ratios(pnls)
    p_value, significant = _significance(pnls)
    max_dd = _max_drawdown(pnls)

    logger.debug(
        "[metrics] n={} wins={} losses={} timeouts={} pf={:.3f} exp={:.4f} maxDD={:.4f}",
        n,
        win_count,
        loss_count,
        timeout_count,
        profit_factor,
        expectancy,
        max_dd,
    )

    return BacktestSummary(
        setup_count=n,
        win_count=win_count,
        loss_count=loss_count,
        timeout_count=timeout_count,
        win_rate=win_rate,
        profit_factor=profit_factor,
        total_profit=total_profit,
        total_loss=total_loss,
        average_pnl=float(pnls.mean()),
        expectancy=expectancy,
        max_drawdown=max_dd,
        average_win=average_win,
        average_loss=average_loss,
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        p_value=p_value,
        is_statistically_significant=significant,
        confidence_level=_confidence(n),
    )


__all__ = ["summarize_events", "TRADING_DAYS"]
