from __future__ import annotations

import math

import numpy as np
import pytest

from notematch.backtest.model import BacktestSummary, Outcome
from notematch.backtest.montecarlo import (
    Assessment,
    DistributionStats,
    MonteCarloParams,
    RandomEntryBaseline,
    SimulationStats,
    compare_with_baseline,
)
from notematch.core.exceptions import ConfigError, DataValidationError


def _sims(win_rates, profit_factors, drawdowns, net_pnls):
    return [
        SimulationStats(
            iteration=i,
            setup_count=10,
            win_rate=w,
            profit_factor=pf,
            max_drawdown=dd,
            net_pnl=net,
        )
        for i, (w, pf, dd, net) in enumerate(
            zip(win_rates, profit_factors, drawdowns, net_pnls)
        )
    ]


def test_same_seed_gives_same_runs(trend_candles, params):
    candles = trend_candles(n=40, step=0.004)
    mc = MonteCarloParams(iterations=25, entry_probability=0.2, seed=7)

    first = RandomEntryBaseline(params(), mc).run(candles)
    second = RandomEntryBaseline(params(), mc).run(candles)

    assert first.simulations == second.simulations
    assert first.iterations == 25
    assert set(first.statistics) == {"win_rate", "profit_factor", "max_drawdown", "net_pnl"}
    assert first.comparison is None


def test_always_entering_on_flat_prices_times_out(flat_candles, params):
    baseline = RandomEntryBaseline(
        params(), MonteCarloParams(iterations=5, entry_probability=1.0, seed=1)
    )
    result = baseline.run(flat_candles)

    # entries at 0, 5, 10, 15: the exit candle never re-enters
    assert all(s.setup_count == 4 for s in result.simulations)
    assert all(s.win_rate == 0.0 and s.net_pnl == 0.0 for s in result.simulations)
    assert result.statistics["net_pnl"].std == 0.0


def test_random_trades_use_simulator_exits(trend_candles, params):
    candles = trend_candles(n=20, step=0.01)
    baseline = RandomEntryBaseline(
        params(), MonteCarloParams(iterations=1, entry_probability=1.0)
    )
    events = baseline.simulate_once(candles, np.random.default_rng(3))

    *closed, last = events
    assert closed
    for event in closed:
        assert event.outcome in (Outcome.WIN, Outcome.LOSS)
        expected = 2.0 if event.outcome is Outcome.WIN else -2.0
        assert event.pnl_percent == pytest.approx(expected)
        assert event.holding_minutes == 30.0
    assert last.exit_time == candles[-1].timestamp


def test_too_few_candles_rejected(trend_candles, params):
    baseline = RandomEntryBaseline(params(), MonteCarloParams(iterations=3, seed=0))
    with pytest.raises(DataValidationError):
        baseline.run(trend_candles(n=9))


@pytest.mark.parametrize(
    "kwargs",
    [{"iterations": 0}, {"entry_probability": 0.0}, {"entry_probability": 1.5}],
)
def test_invalid_monte_carlo_params(kwargs):
    with pytest.raises(ConfigError):
        MonteCarloParams(**kwargs)


def test_distribution_stats():
    stats = DistributionStats.from_values([float(v) for v in range(1, 11)])

    assert stats.mean == pytest.approx(5.5)
    assert stats.median == pytest.approx(5.5)
    assert (stats.min, stats.max) == (1.0, 10.0)
    assert stats.std == pytest.approx(np.std(np.arange(1, 11)))
    assert stats.percentiles == {5: 1.0, 25: 3.0, 50: 5.0, 75: 7.0, 95: 9.0}
    assert [b.count for b in stats.histogram] == [1] * 10
    assert stats.histogram[-1].upper == pytest.approx(10.0)
    assert sum(b.percentage for b in stats.histogram) == pytest.approx(100.0)


def test_distribution_of_constant_values():
    stats = DistributionStats.from_values([0.5] * 4)
    assert stats.std == 0.0
    assert stats.histogram[0].count == 4
    assert stats.histogram[0].upper - stats.histogram[0].lower == pytest.approx(0.1)


def test_comparison_ranks_each_metric():
    sims = _sims(
        win_rates=[i / 10 for i in range(1, 11)],
        profit_factors=[1.0] * 10,
        drawdowns=[float(i) for i in range(1, 11)],
        net_pnls=[float(i) for i in range(10)],
    )
    actual = BacktestSummary(
        win_rate=0.55, profit_factor=math.inf, max_drawdown=2.5, total_profit=5.0
    )

    comparison = compare_with_baseline(sims, actual)

    assert comparison.win_rate_percentile == pytest.approx(50.0)
    assert comparison.profit_factor_percentile == pytest.approx(100.0)
    assert comparison.max_drawdown_percentile == pytest.approx(80.0)
    assert comparison.net_pnl_percentile == pytest.approx(50.0)
    assert comparison.average_percentile == pytest.approx(70.0)
    assert comparison.assessment is Assessment.AVERAGE


def test_comparison_extremes():
    sims = _sims([0.5] * 4, [1.0] * 4, [3.0] * 4, [0.0] * 4)

    strong = BacktestSummary(win_rate=0.9, profit_factor=3.0, max_drawdown=1.0, total_profit=8.0)
    assert compare_with_baseline(sims, strong).assessment is Assessment.EXCELLENT

    weak = BacktestSummary(win_rate=0.1, profit_factor=0.2, max_drawdown=9.0, total_loss=8.0)
    assert compare_with_baseline(sims, weak).assessment is Assessment.VERY_POOR


def test_run_compares_against_actual_summary(trend_candles, params):
    candles = trend_candles(n=30, step=0.004)
    actual = BacktestSummary(win_rate=1.0, profit_factor=math.inf, total_profit=10.0)
    result = RandomEntryBaseline(
        params(), MonteCarloParams(iterations=10, entry_probability=0.3, seed=11)
    ).run(candles, actual=actual)

    assert result.comparison is not None
    assert 0.0 <= result.comparison.average_percentile <= 100.0
