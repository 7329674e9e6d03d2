"""Parameter sweeps over independent indicator graphs.

Every evaluation builds a fresh signal graph with ``build_signals(factory,
**params)``, so runs share nothing but the (read-only) bar series and could
be distributed across processes.
"""

from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, replace
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd
from loguru import logger

from .backtest import BacktestResult, SignalBuilder, run_strategy
from .config import BacktestConfig
from .criteria import AnalysisCriterion, ReturnCriterion
from .num import Num
from .series import BarSeries


@dataclass(frozen=True)
class OptResult:
    score: Num
    params: Dict[str, Any]
    result: BacktestResult


def _evaluate(
    series: BarSeries,
    build_signals: SignalBuilder,
    params: Dict[str, Any],
    criterion: AnalysisCriterion,
    cfg: BacktestConfig,
) -> OptResult:
    entry, exit_ = build_signals(series.factory, **params)
    run_cfg = replace(cfg, name=f"{cfg.name}{params}")
    result = run_strategy(series, entry, exit_, run_cfg, criteria=(criterion,))
    return OptResult(score=result.scores[criterion.name], params=params, result=result)


def rank_results(results: List[OptResult], criterion: AnalysisCriterion) -> List[OptResult]:
    """Sort best-first using the criterion's own ranking direction."""

    def compare(a: OptResult, b: OptResult) -> int:
        if criterion.better_than(a.score, b.score):
            return -1
        if criterion.better_than(b.score, a.score):
            return 1
        return 0

    return sorted(results, key=cmp_to_key(compare))


def grid_search(
    series: BarSeries,
    build_signals: SignalBuilder,
    grid: Mapping[str, Sequence[Any]],
    criterion: AnalysisCriterion = ReturnCriterion(),
    cfg: BacktestConfig = BacktestConfig(),
    output_dir: Optional[str | Path] = None,
) -> List[OptResult]:
    """Evaluate every combination of ``grid``."""
    keys = list(grid)
    results = []
    for values in itertools.product(*(grid[k] for k in keys)):
        results.append(_evaluate(series, build_signals, dict(zip(keys, values)), criterion, cfg))
    return _finish(results, criterion, output_dir)


def random_search(
    series: BarSeries,
    build_signals: SignalBuilder,
    grid: Mapping[str, Sequence[Any]],
    n_evals: int = 50,
    seed: int = 7,
    criterion: AnalysisCriterion = ReturnCriterion(),
    cfg: BacktestConfig = BacktestConfig(),
    output_dir: Optional[str | Path] = None,
) -> List[OptResult]:
    """Random search over ``grid`` (values drawn independently per key)."""
    if n_evals <= 0:
        raise ValueError("n_evals must be positive")
    rng = random.Random(seed)
    results = []
    for _ in range(int(n_evals)):
        params = {k: rng.choice(list(v)) for k, v in grid.items()}
        results.append(_evaluate(series, build_signals, params, criterion, cfg))
    return _finish(results, criterion, output_dir)


def results_frame(results: Sequence[OptResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        d = dict(r.params)
        d.update({k: float(v) for k, v in r.result.scores.items()})
        d["positions"] = r.result.record.position_count
        rows.append(d)
    return pd.DataFrame(rows)


def _finish(
    results: List[OptResult],
    criterion: AnalysisCriterion,
    output_dir: Optional[str | Path],
) -> List[OptResult]:
    ranked = rank_results(results, criterion)
    if ranked:
        logger.info("sweep done: {} runs, best {}={} params={}", len(ranked), criterion.name, ranked[0].score, ranked[0].params)
    if output_dir is not None:
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        results_frame(ranked).to_csv(out_dir / "opt_results.csv", index=False, encoding="utf-8")
    return ranked
