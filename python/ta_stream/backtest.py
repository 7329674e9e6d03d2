"""Backtest runner: drive signals over a bar series into a trading record."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Sequence, Tuple

import pandas as pd
from loguru import logger

from .cashflow import CashFlow, RealizedCashFlow
from .config import BacktestConfig, num_factory_from_config
from .cost_model import cost_models_from_config
from .criteria import (
    AnalysisCriterion,
    MaximumDrawdownCriterion,
    NumberOfPositionsCriterion,
    ProfitLossCriterion,
    ReturnCriterion,
)
from .data_provider import CsvProvider, to_bar_series
from .errors import NumMismatchError
from .indicators import BooleanIndicator
from .num import Num, NumFactory
from .series import BarSeries
from .trading_record import TradingRecord
from .types import TradeType

SignalBuilder = Callable[..., Tuple[BooleanIndicator, BooleanIndicator]]


def default_criteria() -> Tuple[AnalysisCriterion, ...]:
    return (
        ReturnCriterion(),
        MaximumDrawdownCriterion(),
        NumberOfPositionsCriterion(),
        ProfitLossCriterion(),
    )


@dataclass(frozen=True)
class BacktestResult:
    name: str
    record: TradingRecord
    cash_flow: CashFlow
    realized_cash_flow: RealizedCashFlow
    scores: Dict[str, Num]

    def equity(self) -> pd.DataFrame:
        """Both cash flows side by side (floats), for reporting."""
        return pd.concat(
            [
                self.cash_flow.to_series().rename("CashFlow"),
                self.realized_cash_flow.to_series().rename("RealizedCashFlow"),
            ],
            axis=1,
        )


def run_strategy(
    series: BarSeries,
    entry: BooleanIndicator,
    exit_: BooleanIndicator,
    cfg: BacktestConfig = BacktestConfig(),
    criteria: Sequence[AnalysisCriterion] = (),
) -> BacktestResult:
    """Enter/exit at the bar close on which a stable signal fires.

    Entry and exit indicators are driven on every bar, in order, before the
    record sees the bar; at most one trade happens per bar.
    """
    factory = series.factory
    expected = num_factory_from_config(cfg.num)
    if factory != expected:
        raise NumMismatchError(f"series uses {factory!r} values but config asks for {expected!r}")
    models = cost_models_from_config(cfg.cost)
    record = TradingRecord(
        factory,
        TradeType(cfg.trade_type.upper()),
        models.transaction,
        models.holding,
        name=cfg.name,
    )
    amount = factory.num_of(cfg.amount)

    for i, bar in enumerate(series):
        should_enter = entry.on_bar(bar)
        should_exit = exit_.on_bar(bar)
        record.on_bar(bar)
        if i < cfg.unstable_bars:
            continue
        if record.current_position.is_new:
            if should_enter and entry.is_stable:
                record.enter(bar.end_time, bar.close_price, amount)
        elif should_exit and exit_.is_stable:
            record.exit(bar.end_time, bar.close_price)

    criteria = tuple(criteria) or default_criteria()
    scores = {c.name: c.calculate_record(record) for c in criteria}
    result = BacktestResult(
        name=cfg.name,
        record=record,
        cash_flow=CashFlow(record),
        realized_cash_flow=RealizedCashFlow(record),
        scores=scores,
    )
    logger.info(
        "backtest {}: bars={} positions={} open={} {}",
        cfg.name,
        len(series),
        record.position_count,
        record.current_position.is_opened,
        ", ".join(f"{k}={v}" for k, v in scores.items()),
    )
    return result


def run_from_csv(
    csv_path: str | Path,
    symbol: str,
    build_signals: SignalBuilder,
    cfg: BacktestConfig = BacktestConfig(),
    criteria: Sequence[AnalysisCriterion] = (),
) -> BacktestResult:
    """Load a CSV, build a fresh signal graph with ``build_signals(factory)`` and run it."""
    frame = CsvProvider().fetch(csv_path=csv_path, symbol=symbol)
    factory: NumFactory = num_factory_from_config(cfg.num)
    series = to_bar_series(frame, factory)
    entry, exit_ = build_signals(factory)
    return run_strategy(series, entry, exit_, cfg, criteria)
