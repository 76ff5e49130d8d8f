from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from notematch.backtest.engine import BacktestParams, BacktestSimulator
from notematch.backtest.model import BacktestResult
from notematch.core.exceptions import ConfigError
from notematch.core.models import AnchorPattern, Candle
from notematch.logging_utils import logging_context
from notematch.settings import BacktestSettings


@dataclass(frozen=True)
class BacktestJob:
    name: str
    anchor: AnchorPattern
    candles: Union[Sequence[Candle], pd.DataFrame]
    params: BacktestParams


@dataclass
class BatchOutcome:
    """Results of the jobs that completed, and the error of each job that did not."""

    results: Dict[str, BacktestResult] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.errors)


def _execute_job(job: BacktestJob) -> BacktestResult:
    with logging_context(run_id=job.name):
        simulator = BacktestSimulator(job.anchor, job.params)
        return simulator.run(job.candles)


def run_backtests(
    jobs: Sequence[BacktestJob],
    max_workers: Optional[int] = None,
    *,
    settings: Optional[BacktestSettings] = None,
) -> BatchOutcome:
    """
    Run independent backtests on a thread pool.

    A job that raises is logged and recorded in ``errors``; the other jobs
    still complete. Results are keyed by job name in submission order.
    """
    jobs = list(jobs)
    names = [job.name for job in jobs]
    if len(set(names)) != len(names):
        raise ConfigError("backtest job names must be unique")

    outcome = BatchOutcome()
    if not jobs:
        return outcome

    if max_workers is None:
        max_workers = (settings or BacktestSettings()).max_workers
    max_workers = max(1, min(int(max_workers), len(jobs)))

    logger.info("[runner] starting jobs={} workers={}", len(jobs), max_workers)
    started = perf_counter()
    collected: Dict[str, BacktestResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_map = {executor.submit(_execute_job, job): job.name for job in jobs}
        for future in as_completed(future_map):
            name = future_map[future]
            try:
                collected[name] = future.result()
            except Exception as exc:
                logger.exception("[runner] job={} failed: {}", name, exc)
                outcome.errors[name] = exc
                continue

    for name in names:
        if name in collected:
            outcome.results[name] = collected[name]

    duration_ms = (perf_counter() - started) * 1000.0
    logger.info(
        "[runner] completed succeeded={} failed={} duration_ms={:.1f}",
        outcome.succeeded,
        outcome.failed,
        duration_ms,
    )
    return outcome


def summary_frame(outcome: BatchOutcome) -> pd.DataFrame:
    """One row per successful job with its summary statistics."""
    rows: List[dict] = []
    for name, result in outcome.results.items():
        row = {"job": name, "candle_count": result.candle_count}
        row.update(result.summary.to_dict())
        rows.append(row)
    return pd.DataFrame(rows)


__all__ = ["BacktestJob", "BatchOutcome", "run_backtests", "summary_frame"]
